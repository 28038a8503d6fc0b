"""Readers for external feeds and the jobs built on them."""

from fundledger.feeds.telemetry import (
    ExchangeRateSource,
    RepositoryTelemetryFeed,
    Staleness,
    TelemetryFeed,
    classify_staleness,
)

__all__ = [
    "ExchangeRateSource",
    "RepositoryTelemetryFeed",
    "Staleness",
    "TelemetryFeed",
    "classify_staleness",
]
