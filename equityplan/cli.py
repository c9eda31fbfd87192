"""Typer CLI interface for equityplan."""

import logging
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from equityplan.exceptions import GrantNotFoundError, RateTableError
from equityplan.models.client import Client
from equityplan.models.results import EngineWarning

app = typer.Typer(
    name="equityplan",
    help="equityplan: vesting, tax and AMT planning for equity compensation.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    as_of: datetime | None = typer.Option(
        None,
        "--as-of",
        formats=["%Y-%m-%d"],
        help="Evaluation date (YYYY-MM-DD). Defaults to today.",
    ),
    rates: Path | None = typer.Option(
        None,
        "--rates",
        help="JSON rate table to use instead of the built-in tables",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """equityplan: vesting, tax and AMT planning for equity compensation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {
        "as_of": as_of.date() if as_of else date.today(),
        "rates_path": rates,
    }


# --- Helpers ---


def _money(value: Decimal | None) -> str:
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def _num(value: Decimal) -> str:
    if value == value.to_integral_value():
        return f"{int(value):,}"
    return f"{value:,.4f}".rstrip("0").rstrip(".")


def _pct(rate: Decimal) -> str:
    return f"{rate * 100:.1f}%"


def _load_client(path: Path) -> Client:
    if not path.exists():
        typer.echo(f"Error: Client file not found: {path}", err=True)
        raise typer.Exit(1)
    try:
        return Client.model_validate_json(path.read_text())
    except ValidationError as exc:
        typer.echo(f"Error: Invalid client file {path}:\n{exc}", err=True)
        raise typer.Exit(1)


def _rate_table(ctx: typer.Context):
    from equityplan.engines.rates import RateTable

    path = ctx.obj["rates_path"]
    if path is None:
        return RateTable.for_year(ctx.obj["as_of"].year)
    try:
        return RateTable.from_json(path)
    except RateTableError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)


def _custom_rates(ctx: typer.Context):
    """The user-supplied rate table, or None to let engines pick per tax year."""
    return _rate_table(ctx) if ctx.obj["rates_path"] is not None else None


def _get_grant(client: Client, grant_id: str):
    try:
        return client.get_grant(grant_id)
    except GrantNotFoundError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)


def _print_warnings(console: Console, warnings: list[EngineWarning]) -> None:
    seen: set[str] = set()
    for warning in warnings:
        if warning.message in seen:
            continue
        seen.add(warning.message)
        console.print(f"[yellow]Warning ({warning.category}): {warning.message}[/yellow]")


# --- Commands ---


@app.command()
def schedule(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
    grant_id: str | None = typer.Option(None, "--grant", "-g", help="Only this grant"),
    sell_all: bool = typer.Option(False, "--sell-all", help="Simulate selling every vested RSU share"),
) -> None:
    """Show the priced vesting schedule for each grant."""
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    generator = VestingScheduleGenerator(TaxEngine(_rate_table(ctx)))
    grants = [_get_grant(client, grant_id)] if grant_id else client.grants

    for grant in grants:
        result = generator.generate(grant, client, as_of, sell_all=sell_all)
        tbl = Table(title=f"{grant.ticker} {grant.type} {grant.label}", show_header=True)
        tbl.add_column("Date", style="cyan")
        tbl.add_column("Shares", justify="right")
        tbl.add_column("Price", justify="right")
        tbl.add_column("Gross", justify="right", style="green")
        tbl.add_column("Withheld", justify="right")
        tbl.add_column("Sold", justify="right")
        tbl.add_column("Net Shares", justify="right")
        tbl.add_column("Tax Gap", justify="right", style="red")
        tbl.add_column("")
        for event in result.events:
            tbl.add_row(
                event.vest_date.isoformat(),
                _num(event.shares),
                _money(event.price_at_vest),
                _money(event.gross_value),
                _money(event.withholding_amount),
                _num(event.shares_sold_to_cover),
                _num(event.net_shares),
                _money(event.tax_gap),
                "vested" if event.is_past else "",
            )
        console.print(tbl)
        _print_warnings(console, result.warnings)


@app.command()
def status(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
) -> None:
    """Show vested, exercised, available and unvested shares per grant."""
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    generator = VestingScheduleGenerator(TaxEngine(_rate_table(ctx)))

    tbl = Table(title=f"Grant Status: {client.name} (as of {as_of.isoformat()})", show_header=True)
    tbl.add_column("Grant", style="cyan")
    tbl.add_column("Type")
    tbl.add_column("Total", justify="right")
    tbl.add_column("Vested", justify="right")
    tbl.add_column("Exercised", justify="right")
    tbl.add_column("Available", justify="right", style="green")
    tbl.add_column("Unvested", justify="right")
    tbl.add_column("Status")
    for grant in client.grants:
        st = generator.grant_status(grant, client, as_of)
        tbl.add_row(
            f"{grant.ticker} {grant.label}",
            grant.type,
            _num(st.total),
            _num(st.vested_total),
            _num(st.exercised),
            _num(st.available),
            _num(st.unvested),
            st.label,
        )
    console.print(tbl)


@app.command()
def amt(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
    grant_id: str | None = typer.Option(None, "--grant", "-g", help="ISO grant to size exercises for"),
    years: int = typer.Option(3, "--years", help="Years to spread exercises over"),
) -> None:
    """Show remaining AMT-safe ISO exercise room for the tax year."""
    from equityplan.engines.amt import AMTCalculator
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator
    from equityplan.models.enums import GrantType

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    calculator = AMTCalculator(_custom_rates(ctx))
    stats = calculator.compute_room(client, None, as_of)

    tbl = Table(title=f"AMT Room {stats.tax_year}: {client.name}", show_header=True)
    tbl.add_column("Metric", style="cyan")
    tbl.add_column("Value", style="green", justify="right")
    tbl.add_row("Total capacity", _money(stats.total_capacity))
    tbl.add_row("Already used", _money(stats.existing_used))
    tbl.add_row("Remaining room", _money(stats.room))
    console.print(tbl)
    _print_warnings(console, stats.warnings)

    if grant_id is None:
        return
    grant = _get_grant(client, grant_id)
    if grant.type != GrantType.ISO:
        typer.echo(f"Error: Grant {grant_id} is {grant.type}, not ISO", err=True)
        raise typer.Exit(1)

    tax_engine = TaxEngine(_rate_table(ctx))
    available = VestingScheduleGenerator(tax_engine).grant_status(grant, client, as_of).available
    safe = calculator.max_safe_shares(stats.room, grant.current_price, grant.strike_price, available)
    typer.echo(
        f"\n{grant.ticker} {grant.label}: {_num(safe)} of {_num(available)} available shares "
        f"can be exercised this year without AMT (spread {_money(grant.spread_per_share)}/share)"
    )

    plan = calculator.multi_year_plan(grant, client, available, as_of, years=years, tax_engine=tax_engine)
    plan_tbl = Table(title="Multi-Year Exercise Plan", show_header=True)
    plan_tbl.add_column("Year", style="cyan")
    plan_tbl.add_column("AMT Room", justify="right")
    plan_tbl.add_column("Shares", justify="right")
    plan_tbl.add_column("Spread", justify="right")
    plan_tbl.add_column("Exercise Cost", justify="right")
    plan_tbl.add_column("Tax Savings", justify="right", style="green")
    for year in plan.years:
        plan_tbl.add_row(
            str(year.year),
            _money(year.amt_room),
            _num(year.planned_shares),
            _money(year.planned_spread),
            _money(year.exercise_cost),
            _money(year.potential_tax_savings),
        )
    console.print(plan_tbl)
    if plan.remaining_shares > 0:
        typer.echo(f"{_num(plan.remaining_shares)} shares remain after {years} year(s)")


@app.command()
def holdings(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
    sell_all: bool = typer.Option(False, "--sell-all", help="Assume every vested RSU share was sold"),
) -> None:
    """Estimate short/long-term RSU holdings and list ISO exercise lots."""
    from equityplan.engines.lots import LotAllocationEngine
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    engine = LotAllocationEngine(VestingScheduleGenerator(TaxEngine(_rate_table(ctx))))
    summary = engine.summarize(client, as_of, sell_all=sell_all)

    tbl = Table(title=f"RSU Holdings (estimated): {client.name}", show_header=True)
    tbl.add_column("Grant", style="cyan")
    tbl.add_column("Method")
    tbl.add_column("Held", justify="right")
    tbl.add_column("Short-Term", justify="right")
    tbl.add_column("Long-Term", justify="right")
    tbl.add_column("Value", justify="right", style="green")
    tbl.add_column("Unrealized Gain", justify="right")
    for lot in summary.rsu_lots:
        tbl.add_row(
            lot.grant_id,
            lot.method,
            _num(lot.shares_held),
            _num(lot.short_term),
            _num(lot.long_term),
            _money(lot.current_value),
            _money(lot.unrealized_gain),
        )
    tbl.add_row(
        "Total",
        "",
        _num(summary.shares),
        _num(summary.short_term),
        _num(summary.long_term),
        _money(summary.value),
        _money(summary.total_gain) if summary.has_gain_data else "-",
    )
    console.print(tbl)

    if summary.iso_lots:
        iso_tbl = Table(title="ISO Exercise Lots", show_header=True)
        iso_tbl.add_column("Exercise", style="cyan")
        iso_tbl.add_column("Grant")
        iso_tbl.add_column("Date")
        iso_tbl.add_column("Shares", justify="right")
        iso_tbl.add_column("Value", justify="right")
        iso_tbl.add_column("Qualifies On")
        iso_tbl.add_column("Status")
        for lot in summary.iso_lots:
            q = lot.qualification
            iso_tbl.add_row(
                lot.exercise_id,
                f"{lot.ticker} {lot.grant_id}",
                lot.exercise_date.isoformat(),
                _num(lot.shares),
                _money(lot.current_value),
                q.qualifying_date.isoformat(),
                "qualified" if q.is_qualified else f"{q.months_remaining} mo ({q.progress_percent:.0f}%)",
            )
        console.print(iso_tbl)

    _print_warnings(console, summary.warnings)


@app.command(name="iso-compare")
def iso_compare(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
    grant_id: str = typer.Option(..., "--grant", "-g", help="ISO grant"),
    shares: float = typer.Option(..., "--shares", "-s", help="Shares to exercise"),
    sale_price: float | None = typer.Option(None, "--sale-price", help="Projected sale price (default: current price)"),
) -> None:
    """Compare a disqualifying and a qualifying ISO disposition."""
    from equityplan.engines.scenarios import ISOScenarioEngine
    from equityplan.engines.tax import TaxEngine
    from equityplan.models.enums import GrantType

    client = _load_client(client_file)
    console = Console()
    grant = _get_grant(client, grant_id)
    if grant.type != GrantType.ISO:
        typer.echo(f"Error: Grant {grant_id} is {grant.type}, not ISO", err=True)
        raise typer.Exit(1)
    if shares <= 0:
        typer.echo("Error: --shares must be positive", err=True)
        raise typer.Exit(1)

    engine = ISOScenarioEngine(TaxEngine(_rate_table(ctx)))
    qty = Decimal(str(shares))
    price = Decimal(str(sale_price)) if sale_price is not None else grant.current_price
    comparison = engine.compare(qty, grant.strike_price, grant.current_price, price, client)

    tbl = Table(title=f"ISO Disposition Comparison: {_num(qty)} {grant.ticker} @ {_money(price)}", show_header=True)
    tbl.add_column("", style="cyan")
    tbl.add_column("Disqualifying", justify="right")
    tbl.add_column("Qualifying", justify="right")
    dq, q = comparison.disqualified, comparison.qualified
    tbl.add_row("Ordinary income", _money(dq.ordinary_income), _money(q.ordinary_income))
    tbl.add_row("Capital gain", _money(dq.capital_gain), _money(q.capital_gain))
    tbl.add_row("AMT preference", _money(dq.amt_preference), _money(q.amt_preference))
    tbl.add_row("Federal tax", _money(dq.taxes.fed_amount), _money(q.taxes.fed_amount))
    tbl.add_row("State tax", _money(dq.taxes.state_amount), _money(q.taxes.state_amount))
    tbl.add_row("NIIT", _money(dq.taxes.niit_amount), _money(q.taxes.niit_amount))
    tbl.add_row("Total tax", _money(dq.taxes.total_tax), _money(q.taxes.total_tax))
    tbl.add_row("Net profit", _money(dq.net_profit), _money(q.net_profit))
    console.print(tbl)
    typer.echo(f"Holding for a qualifying disposition saves {_money(comparison.tax_savings)}")

    analysis = engine.breakeven(qty, grant.strike_price, grant.current_price, client)
    if analysis.breakeven_price > 0:
        typer.echo(
            f"Breakeven: holding stays ahead down to {_money(analysis.breakeven_price)} "
            f"({analysis.breakeven_decline_percent:.1f}% decline)"
        )

    cashless = engine.cashless(qty, grant.strike_price, grant.current_price, client)
    typer.echo(
        f"Cashless exercise now: {_money(cashless.net_cash)} net cash after "
        f"{_money(cashless.estimated_taxes)} estimated tax ({_pct(cashless.estimated_tax_rate)})"
    )


@app.command()
def calendar(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output .ics path"),
    days: int | None = typer.Option(None, "--days", help="Only events in the next N days"),
) -> None:
    """Write upcoming vesting events to an iCalendar file."""
    from equityplan.engines.projection import ProjectionAggregator
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator
    from equityplan.reports.calendar import CalendarExporter

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    aggregator = ProjectionAggregator(VestingScheduleGenerator(TaxEngine(_rate_table(ctx))))
    events = aggregator.aggregate([client], as_of, days=days)
    if not events:
        typer.echo("No upcoming vesting events")
        raise typer.Exit(0)

    output = output or Path(f"vesting_{client.id}.ics")
    output.write_text(CalendarExporter().render_many(events, as_of), newline="")
    typer.echo(f"Wrote {len(events)} event(s) to {output}")


@app.command()
def upcoming(
    ctx: typer.Context,
    client_files: list[Path] = typer.Argument(..., help="One or more client JSON files"),
    days: int = typer.Option(90, "--days", help="Window length in days"),
    query: str | None = typer.Option(None, "--query", "-q", help="Filter by ticker or client name"),
) -> None:
    """List upcoming vesting events across clients."""
    from equityplan.engines.projection import ProjectionAggregator
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator

    as_of = ctx.obj["as_of"]
    clients = [_load_client(path) for path in client_files]
    console = Console()
    aggregator = ProjectionAggregator(VestingScheduleGenerator(TaxEngine(_rate_table(ctx))))
    events = aggregator.aggregate(clients, as_of, days=days, query=query)

    tbl = Table(title=f"Upcoming Vesting: next {days} days", show_header=True)
    tbl.add_column("Date", style="cyan")
    tbl.add_column("Client")
    tbl.add_column("Grant")
    tbl.add_column("Shares", justify="right")
    tbl.add_column("Gross", justify="right", style="green")
    tbl.add_column("Tax Gap", justify="right", style="red")
    for event in events:
        tbl.add_row(
            event.vest_date.isoformat(),
            event.client_name,
            f"{event.ticker} {event.grant_type}",
            _num(event.shares),
            _money(event.gross_value),
            _money(event.tax_gap),
        )
    console.print(tbl)

    for label, window in (
        ("30 days", aggregator.next_30_days(events, as_of)),
        ("90 days", aggregator.next_90_days(events, as_of)),
    ):
        summary = aggregator.summarize(window)
        typer.echo(f"Next {label}: {summary.count} event(s), {_money(summary.gross)} gross")


@app.command()
def withholding(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
    rate: float | None = typer.Option(None, "--rate", help="Withholding percent for grants without an election"),
) -> None:
    """Compare elected RSU withholding with the estimated liability this year."""
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator
    from equityplan.engines.withholding import WithholdingAnalyzer

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    analyzer = WithholdingAnalyzer(VestingScheduleGenerator(TaxEngine(_rate_table(ctx))))
    override = Decimal(str(rate)) if rate is not None else None
    report = analyzer.analyze(client, as_of, override_rate=override)

    tbl = Table(title=f"RSU Withholding {report.tax_year}: {client.name}", show_header=True)
    tbl.add_column("Grant", style="cyan")
    tbl.add_column("Vesting Value", justify="right")
    tbl.add_column("Elected", justify="right")
    tbl.add_column("Withheld", justify="right")
    tbl.add_column("Actual", justify="right")
    tbl.add_column("Liability", justify="right")
    tbl.add_column("Gap", justify="right", style="red")
    for row in report.grants:
        tbl.add_row(
            f"{row.ticker} {row.grant_id}",
            _money(row.total_vesting_value),
            _pct(row.elected_rate),
            _money(row.elected_withholding),
            _pct(row.actual_rate),
            _money(row.actual_tax_liability),
            _money(row.gap),
        )
    console.print(tbl)
    if report.total_gap > 0:
        typer.echo(
            f"Underwithheld by {_money(report.total_gap)}; "
            f"about {_money(report.quarterly_payment)} per quarterly estimated payment"
        )
    _print_warnings(console, report.warnings)


@app.command()
def quarterly(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
) -> None:
    """Project estimated tax payments for each quarter of the current year."""
    from equityplan.engines.projection import ProjectionAggregator
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    aggregator = ProjectionAggregator(VestingScheduleGenerator(TaxEngine(_rate_table(ctx))))
    estimates = aggregator.quarterly_estimates(client, as_of)

    tbl = Table(title=f"Quarterly Estimated Tax {as_of.year}: {client.name}", show_header=True)
    tbl.add_column("Quarter", style="cyan")
    tbl.add_column("Due")
    tbl.add_column("Vest Income", justify="right")
    tbl.add_column("ISO Spread", justify="right")
    tbl.add_column("Est. Tax", justify="right")
    tbl.add_column("Withheld", justify="right")
    tbl.add_column("Payment Due", justify="right", style="green")
    for q in estimates:
        tbl.add_row(
            q.quarter + (" (past)" if q.is_past else ""),
            q.due_date.isoformat(),
            _money(q.vesting_income),
            _money(q.iso_spread),
            _money(q.estimated_tax),
            _money(q.withholding_credit),
            _money(q.payment_due),
        )
    console.print(tbl)


@app.command()
def espp(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
) -> None:
    """Show ESPP holding-period status and qualified vs. disqualified tax."""
    from equityplan.engines.qualification import ESPPQualificationTracker
    from equityplan.engines.tax import TaxEngine
    from equityplan.models.enums import GrantType

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    tracker = ESPPQualificationTracker(TaxEngine(_rate_table(ctx)))
    grants = [g for g in client.grants if g.type == GrantType.ESPP]
    if not grants:
        typer.echo("No ESPP grants")
        raise typer.Exit(0)

    tbl = Table(title=f"ESPP Qualification: {client.name}", show_header=True)
    tbl.add_column("Grant", style="cyan")
    tbl.add_column("Purchased")
    tbl.add_column("Qualifies On")
    tbl.add_column("Status")
    tbl.add_column("Disqualified Tax", justify="right")
    tbl.add_column("Qualified Tax", justify="right")
    tbl.add_column("Savings", justify="right", style="green")
    for grant in grants:
        q = tracker.compute(grant, client, as_of)
        tbl.add_row(
            f"{q.ticker} {grant.label}",
            q.purchase_date.isoformat(),
            q.qualifying_date.isoformat(),
            "qualified" if q.is_qualified else f"{q.days_remaining} days left",
            _money(q.disqualified_tax),
            _money(q.qualified_tax),
            _money(q.tax_savings),
        )
    console.print(tbl)


@app.command()
def concentration(
    ctx: typer.Context,
    client_file: Path = typer.Argument(..., help="Client JSON file"),
    other_investments: float = typer.Option(0.0, "--other-investments", help="Value of non-equity holdings"),
    net_worth: float | None = typer.Option(None, "--net-worth", help="Estimated net worth"),
) -> None:
    """Show single-stock concentration of equity holdings."""
    from equityplan.engines.projection import ProjectionAggregator
    from equityplan.engines.tax import TaxEngine
    from equityplan.engines.vesting import VestingScheduleGenerator

    as_of = ctx.obj["as_of"]
    client = _load_client(client_file)
    console = Console()
    aggregator = ProjectionAggregator(VestingScheduleGenerator(TaxEngine(_rate_table(ctx))))
    report = aggregator.concentration(
        client,
        as_of,
        Decimal(str(other_investments)),
        Decimal(str(net_worth)) if net_worth is not None else None,
    )

    tbl = Table(title=f"Concentration Risk: {client.name}", show_header=True)
    tbl.add_column("Ticker", style="cyan")
    tbl.add_column("Grants")
    tbl.add_column("Shares", justify="right")
    tbl.add_column("Value", justify="right", style="green")
    tbl.add_column("% of Portfolio", justify="right")
    tbl.add_column("% of Equity", justify="right")
    for position in report.positions:
        tbl.add_row(
            position.ticker,
            ", ".join(position.grant_types),
            _num(position.shares),
            _money(position.value),
            _pct(position.percent_of_portfolio / 100),
            _pct(position.percent_of_equity / 100),
        )
    console.print(tbl)

    largest = report.largest_position
    if largest is not None:
        typer.echo(
            f"Risk: {report.risk_level.upper()} ({largest.ticker} is "
            f"{_pct(report.max_concentration / 100)} of {_money(report.total_portfolio)})"
        )
    if report.equity_percent_of_net_worth is not None:
        typer.echo(f"Equity is {_pct(report.equity_percent_of_net_worth / 100)} of net worth")


if __name__ == "__main__":
    app()
