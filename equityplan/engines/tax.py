"""Flat-rate tax engine.

Turns a taxable amount and a client's tax profile into a federal / state /
NIIT breakdown under either the ordinary-income or the long-term capital gains
regime. Rates resolve as: client override > rate table > 0.
"""

import logging
from decimal import Decimal

from equityplan.engines.rates import RateTable
from equityplan.models.client import Client
from equityplan.models.enums import TaxRegime, WarningCategory
from equityplan.models.results import EffectiveRates, EngineWarning, TaxBreakdown

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class TaxEngine:
    """Computes tax breakdowns for a client under a rate regime."""

    def __init__(self, rates: RateTable | None = None) -> None:
        # None picks the built-in table for each tax year
        self.rate_table = rates

    def rates_for(self, tax_year: int | None = None) -> RateTable:
        if self.rate_table is not None:
            return self.rate_table
        return RateTable.for_year(tax_year) if tax_year is not None else RateTable.latest()

    def get_effective_rates(self, client: Client, tax_year: int | None = None) -> EffectiveRates:
        """Resolve the client's federal, LTCG, state and NIIT rates as fractions.

        tax_year selects the built-in table when none was injected; without
        one the latest table applies.
        """
        table = self.rates_for(tax_year)
        warnings: list[EngineWarning] = []

        if client.custom_state_tax_rate is not None:
            state_rate = client.custom_state_tax_rate / HUNDRED
        else:
            table_rate = table.state_rate(client.state) if client.state else None
            if table_rate is None:
                state_rate = table.default_state_rate
                message = (
                    f"No {table.tax_year} state rate for '{client.state or 'unset'}'; "
                    f"using default {state_rate}"
                )
                logger.warning("Client %s: %s", client.id, message)
                warnings.append(EngineWarning(category=WarningCategory.MISSING_STATE_RATE, message=message))
            else:
                state_rate = table_rate

        if client.custom_ltcg_tax_rate is not None:
            ltcg_rate = client.custom_ltcg_tax_rate / HUNDRED
        else:
            table_ltcg = table.ltcg_rate(client.tax_bracket)
            if table_ltcg is None:
                ltcg_rate = Decimal("0")
                message = f"No LTCG rate for the {client.tax_bracket}% bracket; using 0"
                logger.warning("Client %s: %s", client.id, message)
                warnings.append(EngineWarning(category=WarningCategory.MISSING_LTCG_RATE, message=message))
            else:
                ltcg_rate = table_ltcg

        return EffectiveRates(
            fed_ordinary_rate=client.tax_bracket / HUNDRED,
            fed_ltcg_rate=ltcg_rate,
            state_rate=state_rate,
            niit_rate=table.niit_rate,
            warnings=warnings,
        )

    def combined_rate(self, client: Client, regime: TaxRegime, tax_year: int | None = None) -> Decimal:
        """Federal + state + NIIT rate for a regime."""
        rates = self.get_effective_rates(client, tax_year)
        fed = rates.fed_ordinary_rate if regime == TaxRegime.ORDINARY else rates.fed_ltcg_rate
        return fed + rates.state_rate + rates.niit_rate

    def compute(
        self,
        taxable_amount: Decimal,
        client: Client,
        regime: TaxRegime = TaxRegime.ORDINARY,
        tax_year: int | None = None,
    ) -> TaxBreakdown:
        """Compute the tax breakdown for a taxable amount.

        fed = amount x regime rate, state = amount x state rate,
        niit = amount x NIIT rate. Non-positive amounts owe nothing.
        """
        rates = self.get_effective_rates(client, tax_year)
        fed_rate = rates.fed_ordinary_rate if regime == TaxRegime.ORDINARY else rates.fed_ltcg_rate

        if taxable_amount <= 0:
            return TaxBreakdown(
                regime=regime,
                fed_rate=fed_rate,
                state_rate=rates.state_rate,
                niit_rate=rates.niit_rate,
                warnings=rates.warnings,
            )

        fed_amount = taxable_amount * fed_rate
        state_amount = taxable_amount * rates.state_rate
        niit_amount = taxable_amount * rates.niit_rate

        return TaxBreakdown(
            regime=regime,
            taxable_amount=taxable_amount,
            fed_rate=fed_rate,
            fed_amount=fed_amount,
            state_rate=rates.state_rate,
            state_amount=state_amount,
            niit_rate=rates.niit_rate,
            niit_amount=niit_amount,
            total_tax=fed_amount + state_amount + niit_amount,
            warnings=rates.warnings,
        )
