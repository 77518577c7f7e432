"""
Named-placeholder rendering for response files and other generated text.

Templates use ``str.format`` syntax with named fields only: ``{sid}`` is
replaced by the ``sid`` binding, ``{{`` and ``}}`` produce literal braces.
Positional, attribute and index fields are rejected so that every
placeholder maps to exactly one binding.
"""

import string
from typing import Any, Iterable, List, Mapping, Set

from common.exceptions import TemplateError

_FORMATTER = string.Formatter()


def placeholders(template_text: str) -> List[str]:
    """
    Return the placeholder names in ``template_text`` in order of appearance.

    Raises:
        TemplateError: Malformed braces or unsupported placeholder syntax.
    """
    try:
        parsed = list(_FORMATTER.parse(template_text))
    except ValueError as e:
        raise TemplateError(f"Malformed template: {e}") from e

    names: List[str] = []
    for _literal, field_name, format_spec, _conversion in parsed:
        if field_name is None:
            continue
        if field_name == "" or field_name.isdigit():
            raise TemplateError(
                "Positional placeholders are not supported; use named placeholders."
            )
        if "." in field_name or "[" in field_name:
            raise TemplateError(
                f"Placeholder '{{{field_name}}}' uses attribute or index access, which is not supported."
            )
        if format_spec and "{" in format_spec:
            raise TemplateError(
                f"Nested placeholder in format spec of '{{{field_name}}}' is not supported."
            )
        names.append(field_name)
    return names


def missing_bindings(
    template_text: str, bindings: Mapping[str, Any]
) -> Set[str]:
    return {name for name in placeholders(template_text) if name not in bindings}


def render_template(template_text: str, bindings: Mapping[str, Any]) -> str:
    """
    Substitute every named placeholder in ``template_text``.

    Raises:
        TemplateError: A placeholder has no binding, or the template is
            malformed.
    """
    missing = missing_bindings(template_text, bindings)
    if missing:
        raise TemplateError(
            f"Unresolved placeholder(s): {', '.join(sorted(missing))}",
            missing=missing,
        )
    try:
        return template_text.format_map(dict(bindings))
    except (ValueError, KeyError, IndexError) as e:
        raise TemplateError(f"Failed to render template: {e}") from e


def looks_secret(names: Iterable[str], markers: Iterable[str]) -> bool:
    """True if any binding name contains one of ``markers`` (case-insensitive)."""
    lowered_markers = [marker.lower() for marker in markers]
    return any(
        marker in name.lower() for name in names for marker in lowered_markers
    )
