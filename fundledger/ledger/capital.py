"""Capital event ledger: deposits and withdrawals."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from fundledger.accounting.sources import first_available
from fundledger.errors import NotFoundError, ValidationError
from fundledger.ledger.types import AuditEventType, AuditLogEntry, CapitalEvent, CapitalEventKind
from fundledger.money import ZERO, as_utc, from_epoch, optional_decimal, to_decimal, utc_now
from fundledger.persistence.repository import Repository

if TYPE_CHECKING:
    from fundledger.feeds.telemetry import TelemetryFeed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapitalTotals:
    """Running capital flows for one client."""

    deposited: Decimal
    withdrawn: Decimal

    @property
    def net(self) -> Decimal:
        return self.deposited - self.withdrawn

    def to_dict(self) -> dict:
        return {
            "deposited": self.deposited,
            "withdrawn": self.withdrawn,
            "net": self.net,
        }


def capital_event_from_row(row: dict) -> CapitalEvent:
    return CapitalEvent(
        client_id=row["client_id"],
        kind=CapitalEventKind(row["event_type"]),
        amount=to_decimal(row["amount"]),
        occurred_at=from_epoch(row["occurred_at"]),
        notes=row.get("notes"),
        balance_before=optional_decimal(row.get("balance_before")),
        balance_after=optional_decimal(row.get("balance_after")),
        recorded_by=row.get("recorded_by"),
        recorded_at=from_epoch(row["recorded_at"]),
        event_id=row.get("id"),
    )


def parse_kind(kind: CapitalEventKind | str) -> CapitalEventKind:
    if isinstance(kind, CapitalEventKind):
        return kind
    try:
        return CapitalEventKind(str(kind).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unknown capital event kind: {kind!r}", code="INVALID_KIND", field="kind"
        ) from None


def parse_positive_amount(amount: object, field: str = "amount") -> Decimal:
    """Parse a strictly positive, finite money amount."""
    try:
        value = to_decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(
            f"{field} is not a number: {amount!r}", code="INVALID_AMOUNT", field=field
        ) from None
    if not value.is_finite() or value <= 0:
        raise ValidationError(
            f"{field} must be a positive number, got {amount!r}",
            code="INVALID_AMOUNT",
            field=field,
        )
    return value


class CapitalEventLedger:
    """Records and reads external cash flows.

    Events are immutable; a mistake is corrected by recording an
    offsetting event.
    """

    def __init__(
        self,
        repo: Repository,
        telemetry: "TelemetryFeed | None" = None,
    ) -> None:
        self._repo = repo
        self._telemetry = telemetry

    async def record(
        self,
        client_id: str,
        kind: CapitalEventKind | str,
        amount: object,
        occurred_at: datetime | None = None,
        notes: str | None = None,
        recorded_by: str = "admin",
    ) -> CapitalEvent:
        """Record a deposit or withdrawal and append an audit entry.

        Raises:
            ValidationError: amount not a positive number, or unknown kind.
            NotFoundError: client does not exist.
        """
        event_kind = parse_kind(kind)
        value = parse_positive_amount(amount)

        client = await self._repo.get_client(client_id)
        if client is None:
            raise NotFoundError(f"Client not found: {client_id}", code="CLIENT_NOT_FOUND")

        now = utc_now()
        before, before_source = await self._estimate_balance(client)
        after = None
        if before is not None:
            after = before + value if event_kind == CapitalEventKind.DEPOSIT else before - value

        event = CapitalEvent(
            client_id=client_id,
            kind=event_kind,
            amount=value,
            occurred_at=as_utc(occurred_at) if occurred_at else now,
            notes=notes,
            balance_before=before,
            balance_after=after,
            recorded_by=recorded_by,
            recorded_at=now,
        )
        event.event_id = await self._repo.save_capital_event(event)

        await self._repo.append_audit(
            AuditLogEntry(
                event_type=AuditEventType(event_kind.value),
                client_id=client_id,
                amount=event.signed_amount,
                balance_before=before,
                balance_after=after,
                description=f"{event_kind.value.title()} of {value} recorded by {recorded_by}",
                metadata={
                    "event_id": event.event_id,
                    "notes": notes,
                    "balance_source": before_source,
                    "occurred_at": event.occurred_at.isoformat(),
                },
                created_at=now,
            )
        )

        logger.info(
            "Capital event %s recorded: %s %s %s (balance %s -> %s via %s)",
            event.event_id,
            client_id,
            event_kind.value,
            value,
            before,
            after,
            before_source,
        )
        return event

    async def list_in_range(
        self, client_id: str, start: datetime, end: datetime
    ) -> list[CapitalEvent]:
        """Events with start <= occurred_at < end, by occurrence."""
        rows = await self._repo.get_capital_events(client_id, start, end)
        return [capital_event_from_row(row) for row in rows]

    async def list_recent(self, client_id: str, limit: int = 50) -> list[CapitalEvent]:
        """Most recent events first."""
        rows = await self._repo.get_recent_capital_events(client_id, limit)
        return [capital_event_from_row(row) for row in rows]

    async def totals(self, client_id: str) -> CapitalTotals:
        rows = await self._repo.get_capital_events(client_id)
        deposited = ZERO
        withdrawn = ZERO
        for event in map(capital_event_from_row, rows):
            if event.kind == CapitalEventKind.DEPOSIT:
                deposited += event.amount
            else:
                withdrawn += event.amount
        return CapitalTotals(deposited=deposited, withdrawn=withdrawn)

    async def _estimate_balance(self, client: dict) -> tuple[Decimal | None, str | None]:
        """Best guess of the account value just before the event.

        Informational only; it never feeds the accounting.
        """
        live_equity = None
        live_amount = None
        if self._telemetry is not None and client.get("bot_id"):
            state = await self._telemetry.get_state(client["bot_id"])
            if state is not None:
                live_equity = state.total_equity
                live_amount = state.current_amount

        latest = await self._repo.get_latest_balance(client["client_id"])
        latest_balance = to_decimal(latest["balance"]) if latest else None

        resolved = first_available(
            "balance_before",
            [
                ("live_equity", live_equity),
                ("live_amount", live_amount),
                ("latest_snapshot", latest_balance),
            ],
            context=f"[{client['client_id']}] ",
        )
        return resolved.value, resolved.source
