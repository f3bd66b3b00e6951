from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from procura.core.settings import get_settings
from procura.domain.models import BundledQuote, Quote, QuoteStatus

AnyQuote = Union[Quote, BundledQuote]

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class ValidityStatus:
    status: str  # expired | expiring | expiring-soon | valid
    text: str
    days_left: int


@dataclass(frozen=True)
class ItemsStatus:
    total: int
    available: int
    unavailable: int
    all_available: bool


def is_quote_valid(quote: AnyQuote, now: datetime) -> bool:
    if quote.expiry_date is None:
        return False
    return quote.expiry_date > now


def effective_status(quote: AnyQuote, now: datetime) -> QuoteStatus:
    """Stored status, or EXPIRED once now > expiry_date. Never persisted."""
    if quote.status == QuoteStatus.EXPIRED or now > quote.expiry_date:
        return QuoteStatus.EXPIRED
    return quote.status


def days_until_expiry(quote: AnyQuote, now: datetime) -> int:
    if quote.expiry_date is None:
        return 0
    diff = (quote.expiry_date - now).total_seconds()
    return math.ceil(diff / SECONDS_PER_DAY)


def validity_status(quote: AnyQuote, now: datetime, expiring_soon_days: Optional[int] = None) -> ValidityStatus:
    if expiring_soon_days is None:
        expiring_soon_days = get_settings().expiring_soon_days

    days_left = days_until_expiry(quote, now)

    if days_left < 0:
        return ValidityStatus("expired", f"Expired {abs(days_left)} days ago", days_left)
    if days_left == 0:
        return ValidityStatus("expiring", "Expires today", days_left)
    if days_left <= expiring_soon_days:
        return ValidityStatus("expiring-soon", f"Expires in {days_left} days", days_left)
    return ValidityStatus("valid", f"Valid for {days_left} days", days_left)


def items_status(quote: AnyQuote) -> ItemsStatus:
    total = len(quote.items)
    available = sum(1 for it in quote.items if it.in_stock)
    return ItemsStatus(
        total=total,
        available=available,
        unavailable=total - available,
        all_available=total == available,
    )


def reject_quote(quote: AnyQuote, now: datetime) -> AnyQuote:
    """Only status may change after creation; expired or rejected quotes stay as they are."""
    if effective_status(quote, now) in (QuoteStatus.EXPIRED, QuoteStatus.REJECTED):
        return quote
    return quote.with_status(QuoteStatus.REJECTED)
