"""Vesting schedule generator.

Expands a grant into dated vesting events and prices each event: gross value,
RSU sell-to-cover withholding, the estimated ordinary-income liability, and
the resulting tax gap. Event share counts always sum to the grant total; any
rounding drift lands on the final tranche.
"""

import logging
from collections.abc import Mapping
from datetime import date
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from equityplan.dates import add_months
from equityplan.engines.tax import TaxEngine
from equityplan.models.client import Client
from equityplan.models.enums import GrantType, TaxRegime, VestingScheduleType, WarningCategory
from equityplan.models.grant import OPTION_TYPES, Grant
from equityplan.models.results import (
    EngineWarning,
    GrantStatus,
    TaxBreakdown,
    VestingEvent,
    VestingSchedule,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
WHOLE = Decimal("1")
HUNDRED = Decimal("100")

CLIFF_MONTHS = 12
CLIFF_FRACTION = Decimal("0.25")
QUARTER_MONTHS = 3
POST_CLIFF_QUARTERS = 12
TOTAL_QUARTERS = 16


def _round_shares(value: Decimal) -> Decimal:
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


class VestingScheduleGenerator:
    """Generates vesting events for a grant."""

    def __init__(self, tax_engine: TaxEngine | None = None) -> None:
        self.tax_engine = tax_engine or TaxEngine()

    def tranches(self, grant: Grant) -> tuple[list[tuple[date, Decimal]], list[EngineWarning]]:
        """Scheduled (date, shares) pairs for a grant, before pricing."""
        total = grant.total_shares
        start = grant.grant_date

        match grant.vesting_schedule:
            case VestingScheduleType.STANDARD_4Y_1Y_CLIFF:
                dates = [add_months(start, CLIFF_MONTHS)] + [
                    add_months(start, CLIFF_MONTHS + QUARTER_MONTHS * q)
                    for q in range(1, POST_CLIFF_QUARTERS + 1)
                ]
                per_quarter = _round_shares(total * (1 - CLIFF_FRACTION) / POST_CLIFF_QUARTERS)
                amounts = [_round_shares(total * CLIFF_FRACTION)] + [per_quarter] * POST_CLIFF_QUARTERS
            case VestingScheduleType.STANDARD_4Y_QUARTERLY:
                dates = [add_months(start, QUARTER_MONTHS * q) for q in range(1, TOTAL_QUARTERS + 1)]
                amounts = [_round_shares(total / TOTAL_QUARTERS)] * TOTAL_QUARTERS
            case VestingScheduleType.CUSTOM:
                pairs = sorted((d.vest_date, d.shares) for d in grant.custom_vesting_dates)
                return pairs, []
            case _:
                vest_date = grant.purchase_date if grant.type == GrantType.ESPP else start
                return [(vest_date, total)], []

        amounts, absorbed = self._reconcile(amounts, total)
        warnings: list[EngineWarning] = []
        if absorbed:
            message = (
                f"Grant of {total} shares is too small for whole-share tranches; "
                "rounding was absorbed by trailing tranches"
            )
            logger.warning("Grant %s: %s", grant.id, message)
            warnings.append(
                EngineWarning(category=WarningCategory.ROUNDING_ABSORBED, message=message, grant_id=grant.id)
            )
        return list(zip(dates, amounts)), warnings

    @staticmethod
    def _reconcile(amounts: list[Decimal], total: Decimal) -> tuple[list[Decimal], bool]:
        """Put the rounding difference on the final tranche, never leaving one negative."""
        amounts = list(amounts)
        amounts[-1] += total - sum(amounts, ZERO)
        absorbed = False
        i = len(amounts) - 1
        while i > 0 and amounts[i] < 0:
            absorbed = True
            amounts[i - 1] += amounts[i]
            amounts[i] = ZERO
            i -= 1
        return amounts, absorbed

    def generate(
        self,
        grant: Grant,
        client: Client,
        as_of: date,
        sell_all: bool = False,
        prices: Mapping[date, Decimal] | None = None,
    ) -> VestingSchedule:
        """Generate the priced vesting events for a grant.

        Args:
            grant: The grant to expand.
            client: Tax profile used for the liability estimate.
            as_of: Evaluation date; events before it are past.
            sell_all: Simulate selling every vested RSU share instead of sell-to-cover.
            prices: Recorded vest-date prices; overrides the grant's own vesting_prices.

        Returns:
            VestingSchedule with date-ordered events and any data warnings.
        """
        schedule, warnings = self.tranches(grant)
        history = grant.price_history
        if prices:
            history.update(prices)

        events: list[VestingEvent] = []
        unpriced: list[date] = []
        for vest_date, shares in schedule:
            price = history.get(vest_date)
            if price is None:
                price = grant.current_price
                if vest_date < as_of:
                    unpriced.append(vest_date)
            event = self._build_event(grant, client, vest_date, shares, price, as_of, sell_all)
            for warning in event.tax_breakdown.warnings:
                if warning not in warnings:
                    warnings.append(warning)
            events.append(event)

        if unpriced:
            message = (
                f"{len(unpriced)} past vest date(s) have no recorded price "
                f"(first {unpriced[0].isoformat()}); using current price {grant.current_price}"
            )
            logger.warning("Grant %s: %s", grant.id, message)
            warnings.append(
                EngineWarning(category=WarningCategory.MISSING_HISTORICAL_PRICE, message=message, grant_id=grant.id)
            )

        return VestingSchedule(grant_id=grant.id, events=events, warnings=warnings)

    def generate_for_client(self, client: Client, as_of: date, sell_all: bool = False) -> list[VestingSchedule]:
        return [self.generate(grant, client, as_of, sell_all) for grant in client.grants]

    def _build_event(
        self,
        grant: Grant,
        client: Client,
        vest_date: date,
        shares: Decimal,
        price: Decimal,
        as_of: date,
        sell_all: bool,
    ) -> VestingEvent:
        gross = shares * price
        common = dict(
            grant_id=grant.id,
            grant_type=GrantType(grant.type),
            ticker=grant.ticker,
            company_name=grant.company_name,
            external_grant_id=grant.external_grant_id,
            vest_date=vest_date,
            shares=shares,
            price_at_vest=price,
            gross_value=gross,
            is_past=vest_date < as_of,
        )

        if grant.type != GrantType.RSU:
            # Options and ESPP aren't taxed or withheld at vest; ISO vests carry
            # the spread that would become an AMT preference if exercised.
            amt_exposure = ZERO
            if grant.type == GrantType.ISO:
                amt_exposure = shares * max(price - grant.strike_price, ZERO)
            return VestingEvent(
                **common,
                net_shares=shares,
                net_value=gross,
                amt_exposure=amt_exposure,
                tax_breakdown=TaxBreakdown(regime=TaxRegime.ORDINARY),
            )

        rate_percent = (
            grant.withholding_rate
            if grant.withholding_rate is not None
            else self.tax_engine.rates_for(as_of.year).default_withholding_rate
        )
        elected_rate = rate_percent / HUNDRED
        withholding = gross * elected_rate
        liability = self.tax_engine.compute(gross, client, TaxRegime.ORDINARY, as_of.year)

        if sell_all:
            sold = shares
            net_value = gross - liability.total_tax
        else:
            sold = ZERO
            if price > 0:
                sold = min((withholding / price).to_integral_value(rounding=ROUND_CEILING), shares)
            net_value = (shares - sold) * price

        return VestingEvent(
            **common,
            withholding_amount=withholding,
            elected_withholding_rate=elected_rate,
            shares_sold_to_cover=sold,
            net_shares=shares - sold,
            net_value=net_value,
            tax_gap=liability.total_tax - withholding,
            tax_breakdown=liability,
        )

    def grant_status(self, grant: Grant, client: Client, as_of: date) -> GrantStatus:
        """Vested / exercised / available / unvested share counts for a grant."""
        schedule = self.generate(grant, client, as_of)
        vested = sum((e.shares for e in schedule.past_events), ZERO)
        exercised = ZERO
        if grant.type in OPTION_TYPES:
            exercised = sum((ex.shares for ex in client.exercises_for(grant.id)), ZERO)
        return GrantStatus(
            grant_id=grant.id,
            total=grant.total_shares,
            vested_total=vested,
            exercised=exercised,
            available=max(vested - exercised, ZERO),
            unvested=grant.total_shares - vested,
        )
