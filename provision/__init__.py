# provision/__init__.py
# -*- coding: utf-8 -*-
"""
Configuration, response-file templates and the standard installation plan.
"""
