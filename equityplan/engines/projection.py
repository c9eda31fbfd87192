"""Forward-looking views over vesting events.

Windowed filters and summaries, a cross-client event calendar, per-year
rollups, a current-year quarterly estimated tax projection and single-stock
concentration risk.
"""

import calendar
import logging
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal

from equityplan.dates import add_months
from equityplan.engines.amt import AMTCalculator
from equityplan.engines.vesting import VestingScheduleGenerator
from equityplan.models.client import Client
from equityplan.models.enums import GrantType, RiskLevel, TaxRegime
from equityplan.models.grant import OPTION_TYPES, Grant
from equityplan.models.results import (
    AggregatedVestingEvent,
    ConcentrationReport,
    GrantYearSummary,
    QuarterlyEstimate,
    TickerConcentration,
    VestingEvent,
    VestingYearSummary,
    WindowSummary,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# (label, first month, due month, due day, due in following year)
QUARTERS = [
    ("Q1", 1, 4, 15, False),
    ("Q2", 4, 6, 15, False),
    ("Q3", 7, 9, 15, False),
    ("Q4", 10, 1, 15, True),
]

# Largest single-ticker percent of the portfolio at which each risk level starts
CONCENTRATION_THRESHOLDS = [
    (Decimal("75"), RiskLevel.EXTREME),
    (Decimal("50"), RiskLevel.HIGH),
    (Decimal("25"), RiskLevel.MODERATE),
]


class ProjectionAggregator:
    """Windowed and per-year views of vesting events, single- or multi-client."""

    def __init__(
        self,
        generator: VestingScheduleGenerator | None = None,
        amt_calculator: AMTCalculator | None = None,
    ) -> None:
        self.generator = generator or VestingScheduleGenerator()
        self.amt_calculator = amt_calculator or AMTCalculator(self.generator.tax_engine.rate_table)

    @staticmethod
    def window(
        events: Iterable[VestingEvent],
        as_of: date,
        days: int | None = None,
        months: int | None = None,
    ) -> list[VestingEvent]:
        """Events dated as_of <= date <= end of the window, in date order.

        Exactly one of days or months bounds the window; with neither, every
        event on or after as_of is returned.
        """
        if days is not None:
            end = as_of + timedelta(days=days)
        elif months is not None:
            end = add_months(as_of, months)
        else:
            end = date.max
        return sorted((e for e in events if as_of <= e.vest_date <= end), key=lambda e: e.vest_date)

    def upcoming_12_months(self, events: Iterable[VestingEvent], as_of: date) -> list[VestingEvent]:
        return self.window(events, as_of, months=12)

    def next_30_days(self, events: Iterable[VestingEvent], as_of: date) -> list[VestingEvent]:
        return self.window(events, as_of, days=30)

    def next_90_days(self, events: Iterable[VestingEvent], as_of: date) -> list[VestingEvent]:
        return self.window(events, as_of, days=90)

    @staticmethod
    def summarize(events: Iterable[VestingEvent]) -> WindowSummary:
        summary = WindowSummary()
        for event in events:
            summary.count += 1
            summary.gross += event.gross_value
            summary.tax_gap += event.tax_gap
            summary.shares += event.shares
            summary.net_value += event.net_value
            summary.amt_exposure += event.amt_exposure
        return summary

    def aggregate(
        self,
        clients: Iterable[Client],
        as_of: date,
        days: int | None = None,
        query: str | None = None,
    ) -> list[AggregatedVestingEvent]:
        """Upcoming events across all clients, tagged with their client.

        Args:
            clients: Clients to include.
            as_of: Evaluation date; only events on or after it are returned.
            days: Optional window length; unbounded when omitted.
            query: Case-insensitive filter on ticker or client name.
        """
        needle = query.strip().lower() if query else ""
        result: list[AggregatedVestingEvent] = []

        for client in clients:
            for schedule in self.generator.generate_for_client(client, as_of):
                for event in self.window(schedule.events, as_of, days=days):
                    if needle and needle not in event.ticker.lower() and needle not in client.name.lower():
                        continue
                    result.append(AggregatedVestingEvent(
                        **event.model_dump(),
                        client_id=client.id,
                        client_name=client.name,
                    ))

        result.sort(key=lambda e: (e.vest_date, e.client_name, e.ticker))
        logger.debug("Aggregated %d upcoming events as of %s", len(result), as_of)
        return result

    @staticmethod
    def grants_by_year(grants: Iterable[Grant]) -> list[GrantYearSummary]:
        """Bucket grants by award year: shares, value at award, value now."""
        buckets: dict[int, GrantYearSummary] = {}
        for grant in grants:
            year = grant.grant_date.year
            bucket = buckets.setdefault(year, GrantYearSummary(year=year))
            award_price = grant.grant_price if grant.grant_price is not None else grant.current_price
            bucket.total_shares += grant.total_shares
            bucket.total_initial_value += grant.total_shares * award_price
            bucket.total_current_value += grant.total_shares * grant.current_price
            bucket.count += 1
        return [buckets[year] for year in sorted(buckets)]

    @staticmethod
    def vesting_by_year(events: Iterable[VestingEvent]) -> list[VestingYearSummary]:
        buckets: dict[int, VestingYearSummary] = {}
        for event in events:
            year = event.vest_date.year
            bucket = buckets.setdefault(year, VestingYearSummary(year=year))
            bucket.vested_shares += event.shares
            bucket.gross_value += event.gross_value
        return [buckets[year] for year in sorted(buckets)]

    def quarterly_estimates(self, client: Client, as_of: date) -> list[QuarterlyEstimate]:
        """Estimated tax payments for the four quarters of as_of's calendar year.

        RSU and ESPP vest income is taxed at the combined ordinary rate, less
        RSU withholding. Planned ISO exercise spread is accumulated through the
        year; the part of each quarter's spread that pushes the running total
        past the AMT capacity adds an AMT estimate.
        """
        tax_year = as_of.year
        rate = self.generator.tax_engine.combined_rate(client, TaxRegime.ORDINARY, tax_year)
        capacity = self.amt_calculator.compute_room(client, [], as_of).total_capacity
        cumulative_spread = ZERO

        events = [
            event
            for schedule in self.generator.generate_for_client(client, as_of)
            for event in schedule.events
            if event.vest_date.year == tax_year
        ]
        exercises = [
            ex
            for ex in client.planned_exercises
            if ex.exercise_date.year == tax_year and self._is_iso(client, ex.grant_id)
        ]

        estimates: list[QuarterlyEstimate] = []
        for label, first_month, due_month, due_day, next_year in QUARTERS:
            months = range(first_month, first_month + 3)
            estimate = QuarterlyEstimate(
                quarter=label,
                due_date=date(tax_year + 1 if next_year else tax_year, due_month, due_day),
            )

            for event in events:
                if event.vest_date.month not in months:
                    continue
                if event.grant_type in (GrantType.RSU, GrantType.ESPP):
                    estimate.vesting_income += event.gross_value
                    estimate.withholding_credit += event.withholding_amount

            estimate.iso_spread = sum(
                (ex.amt_exposure for ex in exercises if ex.exercise_date.month in months), ZERO
            )
            amt_before = self.amt_calculator.estimated_amt(cumulative_spread, capacity, tax_year)
            cumulative_spread += estimate.iso_spread
            amt = self.amt_calculator.estimated_amt(cumulative_spread, capacity, tax_year) - amt_before
            estimate.estimated_tax = estimate.vesting_income * rate + amt
            estimate.payment_due = max(estimate.estimated_tax - estimate.withholding_credit, ZERO)

            last_month = first_month + 2
            quarter_end = date(tax_year, last_month, calendar.monthrange(tax_year, last_month)[1])
            estimate.is_past = quarter_end < as_of
            estimates.append(estimate)

        return estimates

    def concentration(
        self,
        client: Client,
        as_of: date,
        other_investments: Decimal = ZERO,
        net_worth: Decimal | None = None,
    ) -> ConcentrationReport:
        """Per-ticker share of the client's portfolio and the resulting risk level.

        Options count their spread on available (vested, unexercised) shares;
        RSU and ESPP positions count held shares, falling back to everything
        vested when no held count is recorded. The risk level follows the
        largest position's percent of equity plus other investments.
        """
        positions: dict[str, TickerConcentration] = {}
        for grant in client.grants:
            status = self.generator.grant_status(grant, client, as_of)
            if grant.type in OPTION_TYPES:
                shares = status.available
                value = grant.spread_per_share * shares
            else:
                held = grant.custom_held_shares if grant.type == GrantType.RSU else None
                shares = held if held is not None else status.vested_total
                value = shares * grant.current_price

            position = positions.setdefault(grant.ticker, TickerConcentration(ticker=grant.ticker))
            position.shares += shares
            position.value += value
            if grant.type not in position.grant_types:
                position.grant_types.append(grant.type)

        report = ConcentrationReport(
            total_equity_value=sum((p.value for p in positions.values()), ZERO),
            other_investments=other_investments,
            net_worth=net_worth,
        )
        total_portfolio = report.total_portfolio
        for position in positions.values():
            if total_portfolio > 0:
                position.percent_of_portfolio = position.value / total_portfolio * 100
            if report.total_equity_value > 0:
                position.percent_of_equity = position.value / report.total_equity_value * 100
        report.positions = sorted(positions.values(), key=lambda p: p.value, reverse=True)

        largest = report.max_concentration
        for threshold, level in CONCENTRATION_THRESHOLDS:
            if largest >= threshold:
                report.risk_level = level
                break
        logger.debug("Client %s: largest position %.1f%% (%s)", client.id, largest, report.risk_level)
        return report

    @staticmethod
    def _is_iso(client: Client, grant_id: str) -> bool:
        return any(g.id == grant_id and g.type == GrantType.ISO for g in client.grants)
