"""Rich rendering of simulation results and market snapshots."""

from typing import Optional

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from lending_vault.core.fixed_point import to_decimal
from lending_vault.core.models import MarketSnapshot
from lending_vault.sandbox.models import SimulationResult


def _fmt_amount(amount: Optional[int]) -> str:
    if amount is None:
        return "-"
    return f"{float(to_decimal(amount)):,.4f}"


def render_result(result: SimulationResult) -> Table:
    """Timeline of a simulation as a rich table, one row per step."""
    table = Table(title=f"{result.name} ({result.market})", show_lines=False)
    table.add_column("Time", justify="right")
    table.add_column("Action")
    table.add_column("Debt", justify="right")
    table.add_column("Shares", justify="right")
    table.add_column("Surplus", justify="right")
    table.add_column("Liquidity", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Status")

    for p in result.points:
        status = Text("ok", style="green") if p.success else Text(p.error, style="red")
        table.add_row(
            str(p.timestamp - result.start_time),
            p.action,
            _fmt_amount(p.total_debt_value),
            _fmt_amount(p.total_debt_share),
            _fmt_amount(p.surplus),
            _fmt_amount(p.liquidity),
            _fmt_amount(p.price),
            status,
        )

    if result.metrics:
        m = result.metrics
        table.caption = (
            f"interest {float(m.total_interest):,.6f} | "
            f"realized rate {float(m.realized_rate) * 100:.4f}% | "
            f"max utilization {float(m.max_utilization) * 100:.2f}% | "
            f"{m.failed_steps}/{m.step_count} rejected"
        )
    return table


def render_snapshot(snapshot: MarketSnapshot) -> Panel:
    """Totals and positions of a market snapshot."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column(justify="right")
    table.add_row("Total debt", _fmt_amount(snapshot.total_debt_value))
    table.add_row("Debt shares", _fmt_amount(snapshot.total_debt_share))
    table.add_row("Surplus", _fmt_amount(snapshot.surplus))
    table.add_row("Liquidity", _fmt_amount(snapshot.liquidity))
    table.add_row("Price", _fmt_amount(snapshot.price))
    table.add_row("Utilization", f"{float(snapshot.utilization) * 100:.2f}%")

    for position in snapshot.positions.values():
        table.add_row(
            position.user,
            f"{_fmt_amount(position.collateral)} {snapshot.collateral_asset} / "
            f"{_fmt_amount(position.debt_value)} {snapshot.debt_asset}",
        )

    return Panel(table, title=snapshot.market)
