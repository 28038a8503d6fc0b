"""Accounting identity and cross-period continuity checks.

Checks are advisory. They return findings and log them; they never raise
and never block persistence.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Sequence

from fundledger.accounting.period import Period
from fundledger.accounting.snapshots import MonthlySnapshot
from fundledger.accounting.stats import MonthStats
from fundledger.config import AccountingConfig
from fundledger.monitor.logger import get_accounting_logger

logger = logging.getLogger(__name__)

CAUSE_CLOSING_MISMATCH = "closing balance differs from balance ledger"
CAUSE_MISSING_CAPITAL_EVENT = "likely missing capital event"
CAUSE_SNAPSHOT_GAP = "likely duplicate or missing balance snapshots"


class FindingKind(str, Enum):
    IDENTITY = "identity"
    CONTINUITY = "continuity"


@dataclass(frozen=True)
class ReconciliationFinding:
    """A mismatch worth a human look."""

    kind: FindingKind
    client_id: str
    period: str
    expected: Decimal
    actual: Decimal
    delta: Decimal
    tolerance: Decimal
    cause: str
    previous_period: str | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "client_id": self.client_id,
            "period": self.period,
            "previous_period": self.previous_period,
            "expected": self.expected,
            "actual": self.actual,
            "delta": self.delta,
            "tolerance": self.tolerance,
            "cause": self.cause,
        }


class ReconciliationChecker:
    """Compares statements against the ledgers and against each other."""

    def __init__(self, config: AccountingConfig) -> None:
        self._config = config
        self._accounting_log = get_accounting_logger()

    def tolerance_for(self, balance: Decimal) -> Decimal:
        """max(absolute tolerance, relative tolerance * |balance|)."""
        return max(
            self._config.reconciliation_abs_tolerance,
            self._config.reconciliation_rel_tolerance * abs(balance),
        )

    def check_identity(
        self,
        client_id: str,
        period: Period,
        stats: MonthStats,
        observed_closing: Decimal | None,
    ) -> ReconciliationFinding | None:
        """opening + net_new_capital + gross_pnl must match the observed closing.

        ``observed_closing`` comes from a separate ledger query, so this
        catches calculator or ordering faults, not just arithmetic.
        """
        if observed_closing is None:
            return None

        expected = stats.expected_closing
        delta = observed_closing - expected
        tolerance = self.tolerance_for(observed_closing)
        if abs(delta) <= tolerance:
            return None

        finding = ReconciliationFinding(
            kind=FindingKind.IDENTITY,
            client_id=client_id,
            period=period.key,
            expected=expected,
            actual=observed_closing,
            delta=delta,
            tolerance=tolerance,
            cause=CAUSE_CLOSING_MISMATCH,
        )
        self._log(finding)
        return finding

    def check_continuity(
        self, snapshots: Sequence[MonthlySnapshot]
    ) -> list[ReconciliationFinding]:
        """Opening of each month must match the prior month's closing.

        Only pairs exactly one calendar month apart are compared.
        """
        by_client: dict[str, list[MonthlySnapshot]] = defaultdict(list)
        for snapshot in snapshots:
            by_client[snapshot.client_id].append(snapshot)

        findings: list[ReconciliationFinding] = []
        for client_id in sorted(by_client):
            ordered = sorted(by_client[client_id], key=lambda s: s.period)
            for prev, curr in zip(ordered, ordered[1:]):
                if curr.period.months_after(prev.period) != 1:
                    continue

                # Unsigned; expected and actual carry the direction
                delta = abs(curr.opening_balance - prev.closing_balance)
                tolerance = self.tolerance_for(prev.closing_balance)
                if delta <= tolerance:
                    continue

                if delta > self._config.large_gap_threshold:
                    cause = CAUSE_MISSING_CAPITAL_EVENT
                else:
                    cause = CAUSE_SNAPSHOT_GAP

                finding = ReconciliationFinding(
                    kind=FindingKind.CONTINUITY,
                    client_id=client_id,
                    period=curr.period.key,
                    previous_period=prev.period.key,
                    expected=prev.closing_balance,
                    actual=curr.opening_balance,
                    delta=delta,
                    tolerance=tolerance,
                    cause=cause,
                )
                self._log(finding)
                findings.append(finding)

        return findings

    def _log(self, finding: ReconciliationFinding) -> None:
        logger.warning(
            "Reconciliation %s mismatch for %s %s: expected=%s actual=%s delta=%s (%s)",
            finding.kind.value,
            finding.client_id,
            finding.period,
            finding.expected,
            finding.actual,
            finding.delta,
            finding.cause,
        )
        self._accounting_log.warning(
            finding.cause,
            extra={
                "client_id": finding.client_id,
                "period": finding.period,
                "expected": str(finding.expected),
                "actual": str(finding.actual),
                "delta": str(finding.delta),
                "kind": finding.kind.value,
            },
        )
