"""Markdown rendering for monthly client statements."""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from fundledger.accounting.period import Period
from fundledger.accounting.stats import MonthStats
from fundledger.config import ReportConfig
from fundledger.ledger.types import Client, ExchangeRate, Trade
from fundledger.money import format_money, format_signed, quantize_cents


@dataclass
class ReportContext:
    """Everything needed to render one client's statement."""

    client: Client
    period: Period
    stats: MonthStats
    fee_fraction: Decimal
    trades: list[Trade] = field(default_factory=list)
    exchange_rate: ExchangeRate | None = None


@dataclass(frozen=True)
class RenderedReport:
    subject: str
    body: str


class ReportWriter:
    """Renders a MonthStats statement to subject and markdown body."""

    def __init__(self, config: ReportConfig) -> None:
        self._config = config

    def render(self, ctx: ReportContext) -> RenderedReport:
        return RenderedReport(subject=self.subject(ctx), body=self._render(ctx))

    def subject(self, ctx: ReportContext) -> str:
        label = ctx.period.label
        if ctx.stats.is_profitable:
            fee = format_money(ctx.stats.performance_fee)
            return f"Your {label} Report - Performance Fee Due: {fee} {self._config.currency}"
        return f"Your {label} Report - Account Statement"

    def write(self, report: RenderedReport, output_path: Path) -> Path:
        """Write a rendered statement to disk, return the path."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(f"{report.subject}\n\n{report.body}", encoding="utf-8")
        return output_path

    def _render(self, ctx: ReportContext) -> str:
        parts: list[str] = []

        parts.append(f"# {self._config.fund_name} - {ctx.period.label} Statement\n")
        parts.append(f"Hello {ctx.client.name},\n")
        parts.append(self._render_account_summary(ctx.stats))

        if ctx.stats.is_profitable:
            parts.append(self._render_fee_due(ctx))
        else:
            parts.append(self._render_loss_carry(ctx.stats))

        parts.append(self._render_performance(ctx.stats))

        if ctx.exchange_rate is not None:
            parts.append(self._render_fiat(ctx.stats, ctx.exchange_rate))

        parts.append(self._render_trades(ctx.trades))

        if self._config.site_url:
            parts.append(f"View your dashboard: {self._config.site_url}\n")

        return "\n".join(parts)

    def _render_account_summary(self, stats: MonthStats) -> str:
        lines = [
            "## Account Summary",
            "| Item | Amount |",
            "|------|--------|",
            f"| Opening Balance | {format_money(stats.opening_balance)} |",
        ]
        if stats.total_deposits > 0:
            lines.append(f"| Deposits | +{format_money(stats.total_deposits)} |")
        if stats.total_withdrawals > 0:
            lines.append(f"| Withdrawals | -{format_money(stats.total_withdrawals)} |")
        lines.append(f"| Trading P&L | {format_signed(stats.gross_pnl)} |")
        lines.append(f"| Closing Balance | {format_money(stats.closing_balance)} |")

        return_pct = stats.return_pct
        if return_pct is not None:
            lines.append(f"| Return | {_format_pct(return_pct, signed=True)} |")
        lines.append("")
        return "\n".join(lines)

    def _render_fee_due(self, ctx: ReportContext) -> str:
        stats = ctx.stats
        share_pct = _format_pct(ctx.fee_fraction * 100)
        due_date = ctx.period.end + timedelta(days=self._config.payment_due_days)

        lines = [
            "## Performance Fee",
            "| Item | Amount |",
            "|------|--------|",
            f"| Trading Profit | {format_signed(stats.gross_pnl)} |",
        ]
        if stats.carried_loss_in > 0:
            lines.append(
                f"| Less: Carried Loss from Prior Month | -{format_money(stats.carried_loss_in)} |"
            )
        lines.extend([
            f"| Net Profit | {format_signed(stats.net_pnl)} |",
            f"| Performance Fee ({share_pct}) | **{format_money(stats.performance_fee)}** |",
            f"| Your Share | {format_signed(stats.client_share)} |",
            "",
            f"Please pay **{format_money(stats.performance_fee)} {self._config.currency}** "
            f"by {due_date.strftime('%B %d, %Y')}.",
            "",
        ])
        if self._config.payment_instructions:
            lines.append("### Payment Instructions")
            lines.append(self._config.payment_instructions)
            lines.append("")
        return "\n".join(lines)

    def _render_loss_carry(self, stats: MonthStats) -> str:
        lines = [
            "## No Performance Fee This Month",
            "| Item | Amount |",
            "|------|--------|",
            f"| Trading Result | {format_signed(stats.gross_pnl)} |",
        ]
        if stats.carried_loss_in > 0:
            lines.append(f"| Prior Carried Loss | -{format_money(stats.carried_loss_in)} |")
        lines.append(f"| Total Loss Carried Forward | -{format_money(stats.carried_loss_out)} |")
        lines.append("")
        if stats.carried_loss_out > 0:
            lines.append(
                f"No fee is due. {format_money(stats.carried_loss_out)} will be recovered "
                "from future profits before any performance fee is charged."
            )
        else:
            lines.append("No fee is due this month.")
        lines.append("")
        return "\n".join(lines)

    def _render_performance(self, stats: MonthStats) -> str:
        if stats.profit_factor.is_infinite():
            profit_factor = "∞"
        else:
            profit_factor = f"{quantize_cents(stats.profit_factor)}"

        lines = [
            "## Trading Performance",
            "| Metric | Value |",
            "|--------|-------|",
            f"| Closed Trades | {stats.total_trades} ({stats.winning_trades}W / {stats.losing_trades}L) |",
            f"| Win Rate | {_format_pct(stats.win_rate)} |",
            f"| Profit Factor | {profit_factor} |",
            f"| Best Trade | {format_signed(stats.best_trade_pnl)} |",
            f"| Worst Trade | {format_signed(stats.worst_trade_pnl)} |",
            f"| Average Win | {format_money(stats.avg_win)} |",
            f"| Average Loss | {format_money(stats.avg_loss)} |",
            f"| Realized P&L | {format_signed(stats.realized_pnl)} |",
            f"| Unrealized Change | {format_signed(stats.unrealized_pnl_change)} |",
            "",
        ]
        return "\n".join(lines)

    def _render_fiat(self, stats: MonthStats, rate: ExchangeRate) -> str:
        prefix = f"{rate.fiat} "
        lines = [
            f"## {rate.fiat} Equivalent",
            f"Rate: 1 {rate.asset} = {quantize_cents(rate.mid_rate)} {rate.fiat} "
            f"({quantize_cents(rate.lower_bound)} - {quantize_cents(rate.upper_bound)})",
            "",
            f"- Closing Balance: {format_money(stats.closing_balance * rate.mid_rate, prefix)}",
        ]
        if stats.performance_fee > 0:
            lines.append(
                f"- Performance Fee: {format_money(stats.performance_fee * rate.mid_rate, prefix)}"
            )
        lines.append("")
        return "\n".join(lines)

    def _render_trades(self, trades: list[Trade]) -> str:
        lines = ["## Transaction History"]
        if not trades:
            lines.append("No trades this month.")
            lines.append("")
            return "\n".join(lines)

        lines.extend([
            "| Time (UTC) | Symbol | Side | Price | Amount | P&L |",
            "|------------|--------|------|-------|--------|-----|",
        ])
        for t in trades:
            pnl = format_signed(t.pnl) if t.pnl is not None else "-"
            lines.append(
                f"| {t.timestamp.strftime('%Y-%m-%d %H:%M')} | {t.symbol} | {t.side.upper()} | "
                f"{quantize_cents(t.price)} | {format_money(t.amount)} | {pnl} |"
            )
        lines.append("")
        return "\n".join(lines)


def _format_pct(value: Decimal, signed: bool = False) -> str:
    """Format a percentage with one decimal place."""
    rounded = value.quantize(Decimal("0.1"))
    if signed and rounded >= 0:
        return f"+{rounded}%"
    return f"{rounded}%"
