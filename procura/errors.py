from __future__ import annotations

from typing import Any, Dict, Optional


class PricingNotice(UserWarning):
    """
    Non-fatal pricing anomaly.

    Instances are collected on results (TierResolution.warnings, Quote.warnings)
    and never raised out of the pricing engine. `code` is UPPER_SNAKE so it can
    be used as a metrics label and in rendered output.
    """

    code: str = "PRICING_NOTICE"

    def __init__(self, message: str, meta: Optional[Dict[str, Any]] = None):
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")

    def as_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "meta": dict(self.meta)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PricingNotice):
            return NotImplemented
        return (self.code, self.message, self.meta) == (other.code, other.message, other.meta)

    def __hash__(self) -> int:
        return hash((self.code, self.message))


class TierResolutionWarning(PricingNotice):
    """No volume tier matched; base price was used."""

    code = "TIER_RESOLUTION_WARNING"


class OfferingUnavailable(PricingNotice):
    """Supplier has no (available) offering; line priced at zero, out of stock."""

    code = "OFFERING_UNAVAILABLE"


class MalformedTierSet(PricingNotice, ValueError):
    """Tier set is unordered or overlapping; matched on ascending min_quantity."""

    code = "MALFORMED_TIER_SET"


class ConfirmationFailure(RuntimeError):
    """
    Raised by the optimistic coordinator after a rollback.
    The original error is chained as __cause__.
    """

    def __init__(self, message: str, update_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
        self.code = "CONFIRMATION_FAILURE"
        self.message = str(message)
        self.update_id = update_id
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")


class CatalogError(ValueError):
    """Catalog seed file could not be parsed or validated."""
