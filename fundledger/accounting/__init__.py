"""Period accounting: statistics, snapshots, fees and reconciliation."""

from fundledger.accounting.period import Period
from fundledger.accounting.stats import MonthStats, compute_stats

__all__ = ["MonthStats", "Period", "compute_stats"]
