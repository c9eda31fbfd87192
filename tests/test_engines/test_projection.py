"""Tests for windowed, aggregated and per-year vesting projections."""

from datetime import date
from decimal import Decimal

import pytest

from equityplan.engines.projection import ProjectionAggregator
from equityplan.engines.tax import TaxEngine
from equityplan.engines.vesting import VestingScheduleGenerator
from equityplan.models.client import Client, PlannedExercise
from equityplan.models.enums import RiskLevel
from equityplan.models.grant import ISOGrant, RSUGrant

AS_OF = date(2024, 6, 1)


@pytest.fixture
def generator(tax_engine: TaxEngine) -> VestingScheduleGenerator:
    return VestingScheduleGenerator(tax_engine)


@pytest.fixture
def aggregator(generator: VestingScheduleGenerator) -> ProjectionAggregator:
    return ProjectionAggregator(generator)


@pytest.fixture
def rsu_events(generator, rsu_grant: RSUGrant, ca_client: Client):
    return generator.generate(rsu_grant, ca_client, AS_OF).events


class TestWindows:
    def test_next_30_and_90_days(self, aggregator, rsu_events):
        assert [e.vest_date for e in aggregator.next_30_days(rsu_events, AS_OF)] == [date(2024, 6, 15)]
        assert [e.vest_date for e in aggregator.next_90_days(rsu_events, AS_OF)] == [date(2024, 6, 15)]

    def test_upcoming_12_months(self, aggregator, rsu_events):
        events = aggregator.upcoming_12_months(rsu_events, AS_OF)
        assert [e.vest_date for e in events] == [
            date(2024, 6, 15),
            date(2024, 9, 15),
            date(2024, 12, 15),
            date(2025, 3, 15),
        ]

    def test_bounds_are_inclusive(self, aggregator, rsu_events):
        assert len(aggregator.window(rsu_events, date(2024, 6, 15), days=0)) == 1
        assert len(aggregator.window(rsu_events, date(2024, 3, 16), days=91)) == 1

    def test_unbounded_window(self, aggregator, rsu_events):
        assert len(aggregator.window(rsu_events, AS_OF)) == 8

    def test_summarize(self, aggregator, rsu_events):
        """Four 300-share vests at $100 with a $9,030 gap each."""
        summary = aggregator.summarize(aggregator.upcoming_12_months(rsu_events, AS_OF))
        assert summary.count == 4
        assert summary.shares == Decimal("1200")
        assert summary.gross == Decimal("120000")
        assert summary.tax_gap == Decimal("36120")
        assert summary.net_value == Decimal("93600")

    def test_summarize_empty(self, aggregator):
        summary = aggregator.summarize([])
        assert summary.count == 0
        assert summary.gross == Decimal("0")


class TestAggregate:
    @pytest.fixture
    def clients(self, ca_client: Client, tx_client: Client):
        other = RSUGrant(
            id="rsu-globx",
            ticker="GLBX",
            total_shares=Decimal("1600"),
            grant_date=date(2023, 7, 1),
            vesting_schedule="standard_4y_quarterly",
            current_price=Decimal("20"),
        )
        return [ca_client, tx_client.model_copy(update={"grants": [other]})]

    def test_merges_and_sorts(self, aggregator, clients):
        events = aggregator.aggregate(clients, AS_OF, days=90)
        dates = [e.vest_date for e in events]
        assert dates == sorted(dates)
        assert {e.client_name for e in events} == {"Jane Doe", "Sam Roe"}
        assert all(AS_OF <= e.vest_date <= date(2024, 8, 30) for e in events)

    def test_query_filters_by_ticker(self, aggregator, clients):
        events = aggregator.aggregate(clients, AS_OF, query="glbx")
        assert events
        assert all(e.ticker == "GLBX" and e.client_id == "client-002" for e in events)

    def test_query_filters_by_client_name(self, aggregator, clients):
        events = aggregator.aggregate(clients, AS_OF, query="jane")
        assert events
        assert all(e.client_name == "Jane Doe" for e in events)

    def test_events_keep_their_figures(self, aggregator, clients):
        event = aggregator.aggregate(clients, AS_OF, days=30, query="ACME")[0]
        assert event.gross_value == Decimal("30000")
        assert event.tax_breakdown.total_tax == Decimal("15630")


class TestYearRollups:
    def test_grants_by_year(self, aggregator, ca_client: Client):
        years = aggregator.grants_by_year(ca_client.grants)
        assert [y.year for y in years] == [2022, 2023]
        assert years[0].total_initial_value == Decimal("384000")
        assert years[0].total_current_value == Decimal("480000")
        # no grant_price on the ISO: award value falls back to the current price
        assert years[1].total_initial_value == Decimal("200000")
        assert years[1].count == 1

    def test_vesting_by_year(self, aggregator, generator, rsu_grant: RSUGrant, ca_client: Client):
        events = generator.generate(rsu_grant, ca_client, AS_OF).events
        years = aggregator.vesting_by_year(events)
        assert [(y.year, y.vested_shares) for y in years] == [
            (2023, Decimal("2100")),
            (2024, Decimal("1200")),
            (2025, Decimal("1200")),
            (2026, Decimal("300")),
        ]
        assert sum(y.vested_shares for y in years) == rsu_grant.total_shares


class TestQuarterlyEstimates:
    @pytest.fixture
    def client(self, tx_client: Client, rsu_grant: RSUGrant, iso_grant: ISOGrant) -> Client:
        exercise = PlannedExercise(
            id="ex-q3",
            grant_id="iso-001",
            shares=Decimal("2500"),
            exercise_date=date(2024, 8, 1),
            exercise_price=Decimal("10"),
            fmv_at_exercise=Decimal("50"),
            amt_exposure=Decimal("100000"),
        )
        return tx_client.model_copy(update={"grants": [rsu_grant, iso_grant], "planned_exercises": [exercise]})

    def test_quarters_and_due_dates(self, aggregator, client: Client):
        quarters = aggregator.quarterly_estimates(client, date(2024, 5, 1))
        assert [q.quarter for q in quarters] == ["Q1", "Q2", "Q3", "Q4"]
        assert [q.due_date for q in quarters] == [
            date(2024, 4, 15),
            date(2024, 6, 15),
            date(2024, 9, 15),
            date(2025, 1, 15),
        ]
        assert [q.is_past for q in quarters] == [True, False, False, False]

    def test_rsu_quarter(self, aggregator, client: Client):
        """One $30,000 RSU vest at 27.8% = 8,340 tax, 6,600 withheld, 1,740 due."""
        q1 = aggregator.quarterly_estimates(client, date(2024, 5, 1))[0]
        assert q1.vesting_income == Decimal("30000")
        assert q1.withholding_credit == Decimal("6600")
        assert q1.estimated_tax == Decimal("8340")
        assert q1.payment_due == Decimal("1740")

    def test_iso_spread_over_capacity_adds_amt(self, aggregator, client: Client):
        """$100,000 spread vs. $85,700 exemption: 14,300 x 28% = 4,004 of AMT."""
        q3 = aggregator.quarterly_estimates(client, date(2024, 5, 1))[2]
        assert q3.iso_spread == Decimal("100000")
        assert q3.estimated_tax == Decimal("8340") + Decimal("4004")
        assert q3.payment_due == Decimal("12344") - Decimal("6600")

    def test_iso_vests_are_not_income(self, aggregator, client: Client):
        quarters = aggregator.quarterly_estimates(client, date(2024, 5, 1))
        assert sum(q.vesting_income for q in quarters) == Decimal("120000")


class TestConcentration:
    def _client(self, ca_client: Client, rsu_grant: RSUGrant, **updates) -> Client:
        """One RSU position of 300 held shares x $100 = $30,000."""
        grant = rsu_grant.model_copy(update={"custom_held_shares": Decimal("300"), **updates})
        return ca_client.model_copy(update={"grants": [grant]})

    @pytest.mark.parametrize(
        "other, level",
        [
            ("10000", RiskLevel.EXTREME),   # 75%
            ("10001", RiskLevel.HIGH),
            ("30000", RiskLevel.HIGH),      # 50%
            ("30001", RiskLevel.MODERATE),
            ("90000", RiskLevel.MODERATE),  # 25%
            ("90001", RiskLevel.LOW),
        ],
    )
    def test_threshold_boundaries(self, aggregator, ca_client, rsu_grant, other: str, level: RiskLevel):
        report = aggregator.concentration(self._client(ca_client, rsu_grant), AS_OF, Decimal(other))
        assert report.total_equity_value == Decimal("30000")
        assert report.risk_level == level

    def test_options_count_spread_on_available_shares(
        self, aggregator, ca_client: Client, planned_exercise: PlannedExercise
    ):
        """By 2024-06-01: RSU 2,400 vested x $100 = 240,000.

        ISO 1,250 vested - 1,000 planned = 250 available x $40 spread = 10,000.
        """
        client = ca_client.model_copy(update={"planned_exercises": [planned_exercise]})
        report = aggregator.concentration(client, AS_OF, Decimal("250000"))

        assert len(report.positions) == 1
        acme = report.largest_position
        assert acme.ticker == "ACME"
        assert acme.value == Decimal("250000")
        assert acme.shares == Decimal("2650")
        assert acme.grant_types == ["RSU", "ISO"]
        assert acme.percent_of_portfolio == Decimal("50")
        assert acme.percent_of_equity == Decimal("100")
        assert report.max_concentration == Decimal("50")
        assert report.risk_level == RiskLevel.HIGH

    def test_positions_sorted_by_value(self, aggregator, ca_client, rsu_grant, iso_grant: ISOGrant):
        other = iso_grant.model_copy(update={"ticker": "BETA"})
        client = ca_client.model_copy(update={
            "grants": [other, rsu_grant.model_copy(update={"custom_held_shares": Decimal("300")})]
        })
        report = aggregator.concentration(client, AS_OF)
        assert [p.ticker for p in report.positions] == ["BETA", "ACME"]
        assert report.total_portfolio == report.total_equity_value == Decimal("80000")
        assert report.positions[1].percent_of_equity == Decimal("37.5")

    def test_net_worth_share(self, aggregator, ca_client, rsu_grant):
        report = aggregator.concentration(
            self._client(ca_client, rsu_grant), AS_OF, net_worth=Decimal("120000")
        )
        assert report.equity_percent_of_net_worth == Decimal("25")
        assert aggregator.concentration(self._client(ca_client, rsu_grant), AS_OF).equity_percent_of_net_worth is None

    def test_empty_portfolio_is_low_risk(self, aggregator, tx_client: Client):
        report = aggregator.concentration(tx_client, AS_OF)
        assert report.positions == []
        assert report.largest_position is None
        assert report.max_concentration == Decimal("0")
        assert report.risk_level == RiskLevel.LOW
