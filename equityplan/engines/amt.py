"""AMT headroom calculator.

Estimates how much ISO spread a client can realize in the current tax year
before triggering AMT, net of exercises already planned for that year.

The capacity lookup is pluggable: the statutory AMT computation isn't modeled
here, only an effective capacity figure. The default schedule uses the AMT
exemption with its income-based phase-out from the rate table.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date
from decimal import ROUND_FLOOR, Decimal

from equityplan.dates import add_years
from equityplan.engines.rates import RateTable
from equityplan.engines.tax import TaxEngine
from equityplan.models.client import Client, PlannedExercise
from equityplan.models.enums import FilingStatus, TaxRegime, WarningCategory
from equityplan.models.grant import ISOGrant
from equityplan.models.results import AMTStats, EngineWarning, MultiYearExercisePlan, YearExercisePlan

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class AMTCapacitySchedule(ABC):
    """Maps a filing status and estimated income to an AMT-safe spread capacity."""

    @abstractmethod
    def capacity(self, filing_status: FilingStatus, estimated_income: Decimal | None) -> Decimal | None:
        """Return the capacity, or None if the schedule has no entry for the filing status."""


class ExemptionPhaseoutSchedule(AMTCapacitySchedule):
    """Capacity = AMT exemption less the phase-out on income above the threshold."""

    def __init__(self, rates: RateTable) -> None:
        self.rates = rates

    def capacity(self, filing_status: FilingStatus, estimated_income: Decimal | None) -> Decimal | None:
        exemption = self.rates.amt_exemption.get(filing_status)
        if exemption is None:
            return None
        if estimated_income is None:
            return exemption
        phaseout_start = self.rates.amt_phaseout_start.get(filing_status, ZERO)
        reduction = max(estimated_income - phaseout_start, ZERO) * self.rates.amt_phaseout_rate
        return max(exemption - reduction, ZERO)


class AMTCalculator:
    """Computes remaining AMT-safe ISO exercise room for a client and tax year."""

    def __init__(
        self,
        rates: RateTable | None = None,
        capacity_schedule: AMTCapacitySchedule | None = None,
    ) -> None:
        self._rates = rates
        self._capacity_schedule = capacity_schedule

    def rates_for(self, tax_year: int) -> RateTable:
        return self._rates or RateTable.for_year(tax_year)

    def compute_room(
        self,
        client: Client,
        planned_exercises: list[PlannedExercise] | None,
        as_of: date,
    ) -> AMTStats:
        """Compute total capacity, capacity already used this tax year, and remaining room.

        Args:
            client: The client; custom_amt_safe_harbor overrides the table lookup.
            planned_exercises: Exercises to count; defaults to the client's own.
            as_of: Evaluation date; only exercises in its calendar year count.
        """
        tax_year = as_of.year
        exercises = client.planned_exercises if planned_exercises is None else planned_exercises
        warnings: list[EngineWarning] = []

        if client.custom_amt_safe_harbor is not None:
            capacity = client.custom_amt_safe_harbor
        else:
            capacity, warnings = self._table_capacity(client, tax_year)

        used = sum((ex.amt_exposure for ex in exercises if ex.exercise_date.year == tax_year), ZERO)
        room = max(capacity - used, ZERO)
        logger.debug(
            "AMT room for client %s (%d): capacity=%s used=%s room=%s",
            client.id, tax_year, capacity, used, room,
        )
        return AMTStats(
            tax_year=tax_year,
            total_capacity=capacity,
            existing_used=used,
            room=room,
            warnings=warnings,
        )

    def _table_capacity(self, client: Client, tax_year: int) -> tuple[Decimal, list[EngineWarning]]:
        warnings: list[EngineWarning] = []
        rates = self.rates_for(tax_year)
        if rates.tax_year != tax_year:
            warnings.append(EngineWarning(
                category=WarningCategory.MISSING_RATE_YEAR,
                message=f"No {tax_year} AMT table; using {rates.tax_year} amounts",
            ))

        if client.estimated_income is None:
            warnings.append(EngineWarning(
                category=WarningCategory.MISSING_ESTIMATED_INCOME,
                message="No estimated income on file; AMT capacity ignores the exemption phase-out",
            ))

        schedule = self._capacity_schedule or ExemptionPhaseoutSchedule(rates)
        capacity = schedule.capacity(client.filing_status, client.estimated_income)
        if capacity is None:
            capacity = ZERO
            warnings.append(EngineWarning(
                category=WarningCategory.MISSING_AMT_TABLE,
                message=f"No AMT capacity entry for filing status {client.filing_status}; using 0",
            ))

        for warning in warnings:
            logger.warning("Client %s: %s", client.id, warning.message)
        return capacity, warnings

    @staticmethod
    def max_safe_shares(
        room: Decimal,
        current_price: Decimal,
        strike_price: Decimal,
        available: Decimal | None = None,
    ) -> Decimal:
        """Whole shares exercisable without exceeding the room; 0 when out of the money."""
        spread = max(current_price - strike_price, ZERO)
        if spread <= 0:
            return ZERO
        shares = (room / spread).to_integral_value(rounding=ROUND_FLOOR)
        if available is not None:
            shares = min(shares, max(available, ZERO))
        return shares

    def estimated_amt(self, spread: Decimal, room: Decimal, tax_year: int | None = None) -> Decimal:
        """Rough AMT cost of spread realized beyond the safe room."""
        overage = max(spread - room, ZERO)
        rates = self.rates_for(tax_year) if tax_year is not None else (self._rates or RateTable.latest())
        return overage * rates.amt_excess_rate

    def multi_year_plan(
        self,
        grant: ISOGrant,
        client: Client,
        available: Decimal,
        as_of: date,
        years: int = 3,
        tax_engine: TaxEngine | None = None,
    ) -> MultiYearExercisePlan:
        """Spread the available ISO shares across tax years at the AMT-safe pace.

        Each year exercises up to that year's remaining room; savings compare
        ordinary-income treatment of the spread against LTCG treatment.
        """
        tax_engine = tax_engine or TaxEngine(self._rates)
        spread_per_share = grant.spread_per_share
        ordinary_rate = tax_engine.combined_rate(client, TaxRegime.ORDINARY, as_of.year)
        ltcg_rate = tax_engine.combined_rate(client, TaxRegime.LTCG, as_of.year)

        total_spread = available * spread_per_share
        plans: list[YearExercisePlan] = []
        remaining = available
        first_year_safe = ZERO

        for i in range(years):
            if remaining <= 0:
                break
            stats = self.compute_room(client, None, add_years(as_of, i))
            safe = self.max_safe_shares(stats.room, grant.current_price, grant.strike_price, remaining)
            if i == 0:
                first_year_safe = safe
            spread = safe * spread_per_share
            plans.append(YearExercisePlan(
                year=stats.tax_year,
                amt_room=stats.room,
                planned_shares=safe,
                planned_spread=spread,
                amt_remaining=max(stats.room - spread, ZERO),
                exercise_cost=safe * grant.strike_price,
                potential_tax_savings=spread * (ordinary_rate - ltcg_rate),
            ))
            remaining -= safe

        return MultiYearExercisePlan(
            grant_id=grant.id,
            spread_per_share=spread_per_share,
            max_safe_shares_per_year=first_year_safe,
            years=plans,
            remaining_shares=remaining,
            single_year_ordinary_tax=total_spread * ordinary_rate,
            max_tax_savings=total_spread * (ordinary_rate - ltcg_rate),
        )
