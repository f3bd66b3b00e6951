from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from procura.core.settings import Settings, get_settings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ValidityPolicy:
    """
    How long generated quotes stay valid.

    Bundled quotes reflect a larger commitment and normally get the longer
    window; the generator and bundler only read this object.
    """

    single_request_days: int = 14
    bundled_days: int = 30
    delivery_lead_days: int = 4

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "ValidityPolicy":
        s = s or get_settings()
        return cls(
            single_request_days=s.quote_validity_days,
            bundled_days=s.bundled_quote_validity_days,
            delivery_lead_days=s.delivery_lead_days,
        )

    @property
    def single_request_validity(self) -> timedelta:
        return timedelta(days=self.single_request_days)

    @property
    def bundled_validity(self) -> timedelta:
        return timedelta(days=self.bundled_days)

    @property
    def delivery_lead_time(self) -> timedelta:
        return timedelta(days=self.delivery_lead_days)
