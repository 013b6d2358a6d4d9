"""Input checks shared by the ledger components."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from podledger.exceptions import ValidationError
from podledger.types import PackageItemInfo

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(value: Any, *, field: str = "email") -> str:
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        raise ValidationError("Invalid email format", field=field)
    return value.strip().lower()


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {field}", field=field)
    return value.strip()


def optional_text(value: Any) -> str | None:
    """Blank strings are stored as None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Expected a string value")
    return value.strip() or None


def validate_items(items: Iterable[Mapping[str, Any]] | None) -> list[PackageItemInfo]:
    """At least one item; positive integer quantities; non-empty descriptions."""
    result: list[PackageItemInfo] = []
    for index, item in enumerate(items or []):
        quantity = item.get("quantity")
        if (
            isinstance(quantity, bool)
            or not isinstance(quantity, int)
            or quantity < 1
        ):
            raise ValidationError(
                "Item quantity must be a positive integer",
                field=f"items[{index}].quantity",
            )
        description = item.get("description")
        if not isinstance(description, str) or not description.strip():
            raise ValidationError(
                "Item description is required",
                field=f"items[{index}].description",
            )
        result.append(
            PackageItemInfo(quantity=quantity, description=description.strip())
        )
    if not result:
        raise ValidationError("At least one item is required", field="items")
    return result
