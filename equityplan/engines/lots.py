"""Estimated short/long-term attribution of held RSU shares.

There is no brokerage cost-basis feed behind this: the split is reconstructed
from the vesting schedule and is labeled as an estimate on every result.

Two modes:
  - FIFO_ESTIMATE: the client told us how many shares they hold
    (custom_held_shares). Tranches are consumed oldest first.
  - SELL_TO_COVER_ESTIMATE: assume every past vest was sell-to-cover and
    nothing was sold since, so held = sum of past net shares.

ISO exercises are never pooled; each planned exercise is its own lot with its
own qualifying-disposition clock.
"""

import logging
from datetime import date
from decimal import Decimal

from equityplan.dates import one_year_before
from equityplan.engines.qualification import ISOQualificationTracker
from equityplan.engines.vesting import VestingScheduleGenerator
from equityplan.exceptions import GrantNotFoundError
from equityplan.models.client import Client
from equityplan.models.enums import AllocationMethod, GrantType, HoldingPeriod, WarningCategory
from equityplan.models.grant import RSUGrant
from equityplan.models.results import (
    EngineWarning,
    HoldingsSummary,
    ISOLot,
    LotAllocation,
    LotTranche,
    VestingEvent,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _holding_period(vest_date: date, cutoff: date) -> HoldingPeriod:
    if vest_date < cutoff:
        return HoldingPeriod.LONG_TERM
    return HoldingPeriod.SHORT_TERM


class LotAllocationEngine:
    """Attributes held RSU shares to vest tranches and rolls up client holdings."""

    def __init__(
        self,
        generator: VestingScheduleGenerator | None = None,
        iso_tracker: ISOQualificationTracker | None = None,
    ) -> None:
        self.generator = generator or VestingScheduleGenerator()
        self.iso_tracker = iso_tracker or ISOQualificationTracker()

    def allocate(self, grant: RSUGrant, events: list[VestingEvent], as_of: date) -> LotAllocation:
        """Split a grant's held shares into short- and long-term buckets.

        Args:
            grant: The RSU grant.
            events: The grant's vesting events; only past ones are considered.
            as_of: Evaluation date. Tranches vested before as_of - 365 days are long-term.
        """
        cutoff = one_year_before(as_of)
        past = sorted((e for e in events if e.vest_date < as_of), key=lambda e: e.vest_date)

        if grant.custom_held_shares is not None:
            return self._allocate_fifo(grant, past, cutoff)

        tranches = [
            LotTranche(vest_date=e.vest_date, shares=e.net_shares, holding_period=_holding_period(e.vest_date, cutoff))
            for e in past
            if e.net_shares > 0
        ]
        long_term = sum((t.shares for t in tranches if t.holding_period == HoldingPeriod.LONG_TERM), ZERO)
        short_term = sum((t.shares for t in tranches if t.holding_period == HoldingPeriod.SHORT_TERM), ZERO)
        held = long_term + short_term
        return LotAllocation(
            grant_id=grant.id,
            method=AllocationMethod.SELL_TO_COVER_ESTIMATE,
            shares_held=held,
            short_term=short_term,
            long_term=long_term,
            current_value=held * grant.current_price,
            tranches=tranches,
        )

    def _allocate_fifo(self, grant: RSUGrant, past: list[VestingEvent], cutoff: date) -> LotAllocation:
        held = grant.custom_held_shares
        remaining = held
        tranches: list[LotTranche] = []

        for event in past:
            if remaining <= 0:
                break
            taken = min(event.shares, remaining)
            if taken <= 0:
                continue
            tranches.append(LotTranche(
                vest_date=event.vest_date,
                shares=taken,
                holding_period=_holding_period(event.vest_date, cutoff),
            ))
            remaining -= taken

        long_term = sum((t.shares for t in tranches if t.holding_period == HoldingPeriod.LONG_TERM), ZERO)
        short_term = sum((t.shares for t in tranches if t.holding_period == HoldingPeriod.SHORT_TERM), ZERO)

        warnings: list[EngineWarning] = []
        unattributed = max(remaining, ZERO)
        if unattributed > 0:
            # More shares held than the schedule has vested; likely bought on the market
            short_term += unattributed
            message = (
                f"{unattributed} held shares exceed vested tranches; counted as short-term"
            )
            logger.warning("Grant %s: %s", grant.id, message)
            warnings.append(EngineWarning(
                category=WarningCategory.UNATTRIBUTED_SHARES, message=message, grant_id=grant.id
            ))

        gain = None
        if grant.average_cost_basis is not None:
            gain = (grant.current_price - grant.average_cost_basis) * held

        return LotAllocation(
            grant_id=grant.id,
            method=AllocationMethod.FIFO_ESTIMATE,
            shares_held=held,
            short_term=short_term,
            long_term=long_term,
            unattributed=unattributed,
            current_value=held * grant.current_price,
            unrealized_gain=gain,
            tranches=tranches,
            warnings=warnings,
        )

    def iso_lots(self, client: Client, as_of: date) -> tuple[list[ISOLot], list[EngineWarning]]:
        """One lot per planned ISO exercise, each with its qualification status."""
        lots: list[ISOLot] = []
        warnings: list[EngineWarning] = []

        for exercise in client.planned_exercises:
            try:
                grant = client.get_grant(exercise.grant_id)
            except GrantNotFoundError:
                message = f"Planned exercise {exercise.id} references unknown grant {exercise.grant_id}"
                logger.warning("Client %s: %s", client.id, message)
                warnings.append(EngineWarning(
                    category=WarningCategory.UNKNOWN_GRANT, message=message, grant_id=exercise.grant_id
                ))
                continue
            if grant.type != GrantType.ISO:
                continue

            lots.append(ISOLot(
                exercise_id=exercise.id,
                grant_id=grant.id,
                ticker=grant.ticker,
                shares=exercise.shares,
                grant_date=grant.grant_date,
                exercise_date=exercise.exercise_date,
                exercise_price=exercise.exercise_price,
                current_price=grant.current_price,
                current_value=exercise.shares * grant.current_price,
                qualification=self.iso_tracker.compute(grant.grant_date, exercise.exercise_date, as_of),
            ))

        lots.sort(key=lambda lot: lot.exercise_date)
        return lots, warnings

    def summarize(self, client: Client, as_of: date, sell_all: bool = False) -> HoldingsSummary:
        """Roll up RSU allocations and ISO lots for a client."""
        summary = HoldingsSummary()

        for grant in client.grants:
            if grant.type != GrantType.RSU:
                continue
            schedule = self.generator.generate(grant, client, as_of, sell_all=sell_all)
            allocation = self.allocate(grant, schedule.events, as_of)
            summary.rsu_lots.append(allocation)
            summary.shares += allocation.shares_held
            summary.value += allocation.current_value
            summary.short_term += allocation.short_term
            summary.long_term += allocation.long_term
            if allocation.has_gain_data:
                summary.has_gain_data = True
                summary.total_gain += allocation.unrealized_gain
            summary.warnings.extend(allocation.warnings)

        summary.iso_lots, iso_warnings = self.iso_lots(client, as_of)
        summary.warnings.extend(iso_warnings)
        return summary
