"""Placeholder resolution against work-item attributes.

Templates reference attributes as ``{name}``. Only names present in the
attribute map are substituted, so JSON text such as ``{"x": {"y": 1}}``
passes through untouched.
"""

from __future__ import annotations

import re
from typing import Mapping

_PLACEHOLDER = re.compile(r"\{([A-Za-z0-9_.\-]+)\}")


def evaluate(template: str, attributes: Mapping[str, str]) -> str:
    """Substitute ``{name}`` placeholders with attribute values.

    Single pass, so substituted values are never re-scanned for placeholders.

    Args:
        template: Text with optional placeholders.
        attributes: Attribute values keyed by name.

    Returns:
        The resolved text. Unknown names are left as written.
    """

    def replacer(match: re.Match) -> str:
        name = match.group(1)
        if name in attributes:
            return str(attributes[name])
        return match.group(0)

    return _PLACEHOLDER.sub(replacer, template)


def placeholders(template: str) -> list[str]:
    """List placeholder names referenced by a template, in order, without duplicates."""
    names: list[str] = []
    for match in _PLACEHOLDER.finditer(template):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names
