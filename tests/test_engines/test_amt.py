"""Tests for AMT room and exercise sizing."""

from datetime import date
from decimal import Decimal

from equityplan.engines.amt import AMTCalculator, AMTCapacitySchedule, ExemptionPhaseoutSchedule
from equityplan.engines.rates import RateTable
from equityplan.engines.tax import TaxEngine
from equityplan.models.client import Client, PlannedExercise
from equityplan.models.enums import FilingStatus, WarningCategory
from equityplan.models.grant import ISOGrant


def _exercise(amount: str, on: date, ex_id: str = "ex") -> PlannedExercise:
    return PlannedExercise(
        id=ex_id,
        grant_id="iso-001",
        shares=Decimal("100"),
        exercise_date=on,
        exercise_price=Decimal("10"),
        fmv_at_exercise=Decimal("50"),
        amt_exposure=Decimal(amount),
    )


class FlatSchedule(AMTCapacitySchedule):
    def __init__(self, amount: Decimal):
        self.amount = amount

    def capacity(self, filing_status, estimated_income):
        return self.amount


class TestComputeRoom:
    def test_safe_harbor_minus_planned_exercises(self):
        """Capacity 150,000 less 40,000 already planned = 110,000 room."""
        client = Client(
            id="c",
            name="Harbor",
            state="CA",
            tax_bracket=Decimal("35"),
            custom_amt_safe_harbor=Decimal("150000"),
            planned_exercises=[_exercise("40000", date(2024, 3, 1))],
        )
        stats = AMTCalculator().compute_room(client, None, date(2024, 6, 1))

        assert stats.tax_year == 2024
        assert stats.total_capacity == Decimal("150000")
        assert stats.existing_used == Decimal("40000")
        assert stats.room == Decimal("110000")
        assert stats.warnings == []

    def test_only_current_year_exercises_count(self):
        client = Client(
            id="c",
            name="Harbor",
            tax_bracket=Decimal("35"),
            custom_amt_safe_harbor=Decimal("150000"),
        )
        exercises = [
            _exercise("40000", date(2023, 12, 31), "old"),
            _exercise("25000", date(2024, 1, 1), "new"),
            _exercise("5000", date(2025, 1, 1), "next"),
        ]
        stats = AMTCalculator().compute_room(client, exercises, date(2024, 6, 1))
        assert stats.existing_used == Decimal("25000")
        assert stats.room == Decimal("125000")

    def test_room_floors_at_zero(self):
        client = Client(
            id="c",
            name="Over",
            tax_bracket=Decimal("35"),
            custom_amt_safe_harbor=Decimal("10000"),
            planned_exercises=[_exercise("40000", date(2024, 3, 1))],
        )
        assert AMTCalculator().compute_room(client, None, date(2024, 6, 1)).room == Decimal("0")

    def test_table_capacity_with_phaseout(self, rates_2024: RateTable):
        """Single, $700,000 income in 2024.

        Reduction = (700,000 - 609,350) x 25% = 22,662.50
        Capacity = 85,700 - 22,662.50 = 63,037.50
        """
        client = Client(id="c", name="High", tax_bracket=Decimal("35"), estimated_income=Decimal("700000"))
        stats = AMTCalculator(rates_2024).compute_room(client, None, date(2024, 6, 1))
        assert stats.total_capacity == Decimal("63037.50")
        assert stats.warnings == []

    def test_income_below_phaseout_gets_full_exemption(self, ca_client: Client):
        stats = AMTCalculator().compute_room(ca_client, [], date(2024, 6, 1))
        assert stats.total_capacity == Decimal("85700")

    def test_missing_income_uses_full_exemption_with_warning(self, tx_client: Client):
        stats = AMTCalculator().compute_room(tx_client, [], date(2024, 6, 1))
        assert stats.total_capacity == Decimal("85700")
        assert [w.category for w in stats.warnings] == [WarningCategory.MISSING_ESTIMATED_INCOME]

    def test_year_without_table_warns(self, ca_client: Client):
        stats = AMTCalculator().compute_room(ca_client, [], date(2031, 6, 1))
        categories = [w.category for w in stats.warnings]
        assert WarningCategory.MISSING_RATE_YEAR in categories
        assert stats.total_capacity == AMTCalculator().rates_for(2031).amt_exemption[FilingStatus.SINGLE]

    def test_missing_filing_status_entry(self, rates_2024: RateTable, ca_client: Client):
        rates_2024.amt_exemption = {FilingStatus.MARRIED_JOINT: Decimal("133300")}
        stats = AMTCalculator(rates_2024).compute_room(ca_client, [], date(2024, 6, 1))
        assert stats.total_capacity == Decimal("0")
        assert stats.warnings[-1].category == WarningCategory.MISSING_AMT_TABLE

    def test_pluggable_schedule(self, ca_client: Client):
        calculator = AMTCalculator(capacity_schedule=FlatSchedule(Decimal("50000")))
        assert calculator.compute_room(ca_client, [], date(2024, 6, 1)).room == Decimal("50000")


class TestExemptionPhaseoutSchedule:
    def test_fully_phased_out(self, rates_2024: RateTable):
        schedule = ExemptionPhaseoutSchedule(rates_2024)
        assert schedule.capacity(FilingStatus.SINGLE, Decimal("2000000")) == Decimal("0")

    def test_married_joint(self, rates_2024: RateTable):
        schedule = ExemptionPhaseoutSchedule(rates_2024)
        assert schedule.capacity(FilingStatus.MARRIED_JOINT, Decimal("100000")) == Decimal("133300")


class TestMaxSafeShares:
    def test_room_over_spread(self):
        """110,000 room / $5 spread = 22,000 shares."""
        shares = AMTCalculator.max_safe_shares(Decimal("110000"), Decimal("15"), Decimal("10"))
        assert shares == Decimal("22000")

    def test_floors_partial_shares(self):
        shares = AMTCalculator.max_safe_shares(Decimal("1000"), Decimal("13"), Decimal("10"))
        assert shares == Decimal("333")

    def test_underwater_is_zero(self):
        assert AMTCalculator.max_safe_shares(Decimal("110000"), Decimal("8"), Decimal("10")) == Decimal("0")
        assert AMTCalculator.max_safe_shares(Decimal("110000"), Decimal("10"), Decimal("10")) == Decimal("0")

    def test_capped_by_available(self):
        shares = AMTCalculator.max_safe_shares(Decimal("110000"), Decimal("15"), Decimal("10"), Decimal("1000"))
        assert shares == Decimal("1000")


class TestEstimatedAMT:
    def test_only_excess_is_taxed(self):
        assert AMTCalculator().estimated_amt(Decimal("60000"), Decimal("50000")) == Decimal("2800.00")

    def test_within_room_is_zero(self):
        assert AMTCalculator().estimated_amt(Decimal("40000"), Decimal("50000")) == Decimal("0")


class TestMultiYearPlan:
    def test_spreads_shares_across_years(self, rates_2024: RateTable):
        """Safe harbor 100,000 and $40 spread: 2,500 shares/year.

        6,000 available -> 2,500 + 2,500 + 1,000.
        """
        grant = ISOGrant(
            id="iso-big",
            ticker="ACME",
            total_shares=Decimal("6000"),
            grant_date=date(2020, 1, 1),
            current_price=Decimal("50"),
            strike_price=Decimal("10"),
        )
        client = Client(
            id="c",
            name="Planner",
            state="TX",
            tax_bracket=Decimal("35"),
            custom_amt_safe_harbor=Decimal("100000"),
            grants=[grant],
        )
        plan = AMTCalculator(rates_2024).multi_year_plan(
            grant, client, Decimal("6000"), date(2024, 6, 1), years=3, tax_engine=TaxEngine(rates_2024)
        )

        assert [y.year for y in plan.years] == [2024, 2025, 2026]
        assert [y.planned_shares for y in plan.years] == [Decimal("2500"), Decimal("2500"), Decimal("1000")]
        assert plan.max_safe_shares_per_year == Decimal("2500")
        assert plan.remaining_shares == Decimal("0")
        # ordinary 35% vs LTCG 20%, both with NIIT and no state tax
        assert plan.years[0].potential_tax_savings == Decimal("100000") * Decimal("0.15")
        assert plan.total_savings == plan.max_tax_savings

    def test_leftover_when_years_run_out(self, rates_2024: RateTable, iso_grant: ISOGrant):
        client = Client(
            id="c",
            name="Planner",
            tax_bracket=Decimal("35"),
            custom_amt_safe_harbor=Decimal("40000"),
            grants=[iso_grant],
        )
        plan = AMTCalculator(rates_2024).multi_year_plan(
            iso_grant, client, Decimal("4000"), date(2024, 6, 1), years=2
        )
        assert sum(y.planned_shares for y in plan.years) == Decimal("2000")
        assert plan.remaining_shares == Decimal("2000")
