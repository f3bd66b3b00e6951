# procura/app.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from procura.core.logging_config import logger, setup_logging
from procura.core.settings import Settings, get_settings
from procura.engine.bundler import QuoteBundler
from procura.engine.policy import Clock, ValidityPolicy, utc_now
from procura.engine.quote_generator import QuoteGenerator
from procura.optimistic.coordinator import ErrorHandler
from procura.services.gateway import InMemoryProcurementGateway, ProcurementGateway
from procura.services.quote_service import QuoteService
from procura.services.request_board import RequestBoard


@dataclass
class ProcurementApp:
    settings: Settings
    gateway: ProcurementGateway
    quotes: QuoteService
    requests: RequestBoard


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[ProcurementGateway] = None,
    clock: Clock = utc_now,
    on_error: Optional[ErrorHandler] = None,
) -> ProcurementApp:
    """
    Wire the core together. Without an explicit gateway the in-memory one is
    used, seeded from settings.catalog_path when set.
    """
    s = settings or get_settings()
    setup_logging(s.log_level, json_logs=s.log_json)

    if gateway is None:
        if s.catalog_path:
            gateway = InMemoryProcurementGateway.from_yaml_file(s.catalog_path)
        else:
            gateway = InMemoryProcurementGateway()

    policy = ValidityPolicy.from_settings(s)
    generator = QuoteGenerator(policy=policy, clock=clock)
    bundler = QuoteBundler(resolver=generator.resolver, policy=policy, clock=clock)

    app = ProcurementApp(
        settings=s,
        gateway=gateway,
        quotes=QuoteService(gateway, generator=generator, bundler=bundler),
        requests=RequestBoard(gateway, on_error=on_error),
    )
    logger.info("startup", service="procura", env=s.app_env, catalog=s.catalog_path)
    return app
