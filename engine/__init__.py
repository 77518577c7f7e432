"""
Provisioning engine: step abstraction, built-in steps, platform adapters
and the fail-fast runner.
"""
