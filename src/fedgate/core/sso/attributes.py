"""Map IdP claim names to canonical user fields."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fedgate.core.types import AttributeKeyMapping, UserAttributes

CANONICAL_FIELDS = ("email", "first_name", "last_name")


@dataclass(frozen=True)
class AttributeExtraction:
    """Extraction outcome, including which canonical fields came up empty."""

    attributes: UserAttributes | None
    missing: tuple[str, ...] = ()


def _first_string(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    if value is None:
        return ""
    return str(value).strip()


def map_attributes(raw: dict[str, Any], mapping: AttributeKeyMapping) -> AttributeExtraction:
    """Dereference ``raw`` through ``mapping``.

    All three canonical fields must resolve to a non-empty string; otherwise
    no identity is produced and ``missing`` names the empty fields.
    """
    values: dict[str, str] = {}
    for canonical in CANONICAL_FIELDS:
        claim = getattr(mapping, canonical)
        values[canonical] = _first_string(raw.get(claim)) if claim and claim in raw else ""

    missing = tuple(name for name in CANONICAL_FIELDS if not values[name])
    if missing:
        return AttributeExtraction(attributes=None, missing=missing)

    return AttributeExtraction(attributes=UserAttributes(**values))


def extract_attributes(
    raw: dict[str, Any], mapping: AttributeKeyMapping
) -> UserAttributes | None:
    """Return the mapped identity, or ``None`` if any canonical field is empty."""
    return map_attributes(raw, mapping).attributes
