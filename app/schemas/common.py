from __future__ import annotations

import re
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


# Monetary values are exact Decimals internally and plain JSON numbers on the wire.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base for API payloads: snake_case attributes, camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class MessageResponse(CamelModel):
    message: str


def normalize_email(value: str) -> str:
    return value.strip().lower()


def digits_only(value: str, length: int, label: str) -> str:
    cleaned = str(value).strip()
    if not re.fullmatch(r"[0-9]{%d}" % length, cleaned):
        raise ValueError(f"{label} must be exactly {length} digits")
    return cleaned
