# claimflow/models/base.py
"""Base helpers shared by the value models."""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what the store persists."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def round_half_up(value) -> int:
    """Round a non-negative amount to the nearest whole currency unit, .5 up."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_claim_number(year: int, sequence: int) -> str:
    """Claim numbers look like CLM-2024-00042."""
    return f"CLM-{year}-{sequence:05d}"


class ValueModel(BaseModel):
    """Base for ephemeral value objects."""

    model_config = ConfigDict(use_enum_values=True)
