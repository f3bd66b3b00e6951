# procura/observability/metrics.py
from prometheus_client import Counter, Gauge, generate_latest

quotes_generated_counter = Counter(
    "procura_quotes_generated_total",
    "Aantal gegenereerde quotes",
    ["kind"],  # single|bundled
)

pricing_notice_counter = Counter(
    "procura_pricing_notices_total",
    "Niet-fatale prijsmeldingen",
    ["code"],  # TIER_RESOLUTION_WARNING|OFFERING_UNAVAILABLE|MALFORMED_TIER_SET
)

optimistic_update_counter = Counter(
    "procura_optimistic_updates_total",
    "Afgeronde optimistic updates",
    ["result"],  # committed|rolled_back
)

pending_updates_gauge = Gauge(
    "procura_optimistic_updates_pending",
    "Optimistic updates waarvan de bevestiging nog loopt",
)


def render_latest() -> bytes:
    # Prometheus text exposition; transport is aan de host-applicatie
    return generate_latest()


def _enabled() -> bool:
    from procura.core.settings import get_settings

    return get_settings().metrics_enabled


def record_quotes(kind: str, count: int = 1) -> None:
    if _enabled() and count:
        quotes_generated_counter.labels(kind=kind).inc(count)


def record_notice(code: str) -> None:
    if _enabled():
        pricing_notice_counter.labels(code=code).inc()


def record_update(result: str) -> None:
    if _enabled():
        optimistic_update_counter.labels(result=result).inc()


def set_pending(count: int) -> None:
    if _enabled():
        pending_updates_gauge.set(count)
