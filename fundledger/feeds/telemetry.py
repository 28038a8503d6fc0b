"""Live bot telemetry and exchange rate readers."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

from fundledger.config import TelemetryConfig
from fundledger.ledger.types import ExchangeRate, LiveBotState
from fundledger.money import as_utc, from_epoch, optional_decimal, to_decimal
from fundledger.persistence.repository import Repository

logger = logging.getLogger(__name__)


class Staleness(str, Enum):
    """How current the live telemetry is."""

    FRESH = "fresh"
    DELAYED = "delayed"
    STALE = "stale"
    OFFLINE = "offline"


def classify_staleness(
    updated_at: datetime | None,
    now: datetime,
    config: TelemetryConfig,
) -> Staleness:
    """Fresh under ``fresh_minutes``, delayed under ``delayed_minutes``."""
    if updated_at is None:
        return Staleness.OFFLINE
    age_minutes = (as_utc(now) - as_utc(updated_at)).total_seconds() / 60
    if age_minutes < config.fresh_minutes:
        return Staleness.FRESH
    if age_minutes < config.delayed_minutes:
        return Staleness.DELAYED
    return Staleness.STALE


def bot_state_from_row(row: dict) -> LiveBotState:
    return LiveBotState(
        bot_id=row["bot_id"],
        updated_at=from_epoch(row["updated_at"]),
        current_amount=optional_decimal(row.get("current_amount")),
        total_equity=optional_decimal(row.get("total_equity")),
        position=row.get("position"),
        symbol=row.get("symbol"),
        leverage=optional_decimal(row.get("leverage")),
    )


class TelemetryFeed(ABC):
    """Source of the latest live state per trading account."""

    @abstractmethod
    async def get_state(self, bot_id: str) -> LiveBotState | None:
        """Latest state for a bot, or None if it never reported."""
        pass


class RepositoryTelemetryFeed(TelemetryFeed):
    """Reads the bot_state table maintained by the external sync process."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def get_state(self, bot_id: str) -> LiveBotState | None:
        row = await self._repo.get_bot_state(bot_id)
        if row is None:
            logger.debug("No telemetry for bot %s", bot_id)
            return None
        return bot_state_from_row(row)


class ExchangeRateSource:
    """Latest asset/fiat rates written by the external rate fetcher."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def get_rate(self, fiat: str | None, asset: str = "USDT") -> ExchangeRate | None:
        if not fiat:
            return None
        row = await self._repo.get_latest_exchange_rate(fiat.upper(), asset)
        if row is None:
            return None
        return ExchangeRate(
            asset=row["asset"],
            fiat=row["fiat"],
            lower_bound=to_decimal(row["lower_bound"]),
            upper_bound=to_decimal(row["upper_bound"]),
            mid_rate=to_decimal(row["mid_rate"]),
            fetched_at=from_epoch(row["fetched_at"]),
        )
