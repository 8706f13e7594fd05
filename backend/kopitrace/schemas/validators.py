"""Reusable field validators for request schemas.

Usage in Pydantic models:

    class InventoryWrite(WireModel):
        item_name: str = Field(alias="nama_item")

        @field_validator("item_name")
        @classmethod
        def _item_name(cls, v):
            return require_text(v, max_length=255)
"""

import re

# Batch identifiers are opaque, but must be a single printable token
BATCH_ID_REGEX = re.compile(r"^\S+$")

BATCH_ID_MAX_LENGTH = 100


def require_text(value: str, max_length: int = 1000) -> str:
    """Trim a required string and reject blanks.

    Raises:
        ValueError: If the value is empty after trimming or too long
    """
    if not isinstance(value, str):
        raise ValueError("Must be a string")

    value = value.strip()
    if not value:
        raise ValueError("Must not be empty")
    if len(value) > max_length:
        raise ValueError(f"String too long (max {max_length} characters)")
    return value


def validate_batch_id(value: str | None) -> str | None:
    """Normalize an optional batch identifier.

    Blank strings become None so an empty form field never creates a
    lineage edge to the empty batch id.
    """
    if value is None:
        return None

    value = value.strip()
    if not value:
        return None
    if len(value) > BATCH_ID_MAX_LENGTH:
        raise ValueError(f"Batch ID too long (max {BATCH_ID_MAX_LENGTH} characters)")
    if not BATCH_ID_REGEX.match(value):
        raise ValueError("Batch ID must not contain whitespace")
    return value
