"""ISO exercise-and-sale scenarios.

Compares a disqualifying sale (whole gain taxed as ordinary income) against a
qualifying sale (whole gain taxed as long-term capital gains, with the
exercise spread as an AMT preference item), finds the price decline that
erases the benefit of holding, and sizes a cashless exercise.
"""

from decimal import Decimal

from equityplan.engines.tax import TaxEngine
from equityplan.models.client import Client
from equityplan.models.enums import DispositionType, TaxRegime
from equityplan.models.results import (
    BreakevenAnalysis,
    BreakevenPoint,
    CashlessExercise,
    ISOScenario,
    ScenarioComparison,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

BREAKEVEN_STEP = Decimal("0.5")
DECLINE_STEPS = [Decimal(p) for p in (0, 5, 10, 15, 20, 25, 30, 40, 50)]


class ISOScenarioEngine:
    def __init__(self, tax_engine: TaxEngine | None = None) -> None:
        self.tax_engine = tax_engine or TaxEngine()

    def scenario(
        self,
        shares: Decimal,
        strike_price: Decimal,
        fmv_at_exercise: Decimal,
        sale_price: Decimal,
        client: Client,
        qualified: bool,
        tax_year: int | None = None,
    ) -> ISOScenario:
        """Tax and net profit of exercising at the strike and selling at sale_price."""
        gain = (sale_price - strike_price) * shares

        if qualified:
            taxes = self.tax_engine.compute(gain, client, TaxRegime.LTCG, tax_year)
            return ISOScenario(
                name="Qualifying Disposition",
                description="Held 1 year from exercise and 2 years from grant; gain taxed as long-term capital gains",
                disposition=DispositionType.QUALIFYING,
                shares=shares,
                strike_price=strike_price,
                fmv_at_exercise=fmv_at_exercise,
                sale_price=sale_price,
                ordinary_income=ZERO,
                capital_gain=gain,
                amt_preference=max(fmv_at_exercise - strike_price, ZERO) * shares,
                taxes=taxes,
                net_profit=gain - taxes.total_tax,
            )

        taxes = self.tax_engine.compute(gain, client, TaxRegime.ORDINARY, tax_year)
        return ISOScenario(
            name="Disqualifying Disposition",
            description="Sold before the holding periods are met; gain taxed as ordinary income",
            disposition=DispositionType.DISQUALIFYING,
            shares=shares,
            strike_price=strike_price,
            fmv_at_exercise=fmv_at_exercise,
            sale_price=sale_price,
            ordinary_income=gain,
            capital_gain=ZERO,
            amt_preference=ZERO,
            taxes=taxes,
            net_profit=gain - taxes.total_tax,
        )

    def compare(
        self,
        shares: Decimal,
        strike_price: Decimal,
        fmv_at_exercise: Decimal,
        sale_price: Decimal,
        client: Client,
        tax_year: int | None = None,
    ) -> ScenarioComparison:
        """Both dispositions at the same sale price, isolating the rate difference.

        tax_year picks the built-in rate table when none was injected; the
        latest table applies otherwise.
        """
        return ScenarioComparison(
            disqualified=self.scenario(shares, strike_price, fmv_at_exercise, sale_price, client, False, tax_year),
            qualified=self.scenario(shares, strike_price, fmv_at_exercise, sale_price, client, True, tax_year),
        )

    def breakeven(
        self,
        shares: Decimal,
        strike_price: Decimal,
        current_price: Decimal,
        client: Client,
        tax_year: int | None = None,
    ) -> BreakevenAnalysis:
        """Lowest future price at which holding for LTCG still beats selling now.

        Walks down from the current price in $0.50 steps until selling now at
        the ordinary rate nets at least as much as holding and selling at the
        lower price.
        """
        spread = current_price - strike_price
        if shares <= 0 or spread <= 0:
            return BreakevenAnalysis(
                breakeven_price=ZERO,
                breakeven_decline_percent=ZERO,
                tax_savings_at_current=ZERO,
            )

        savings = self.compare(shares, strike_price, current_price, current_price, client, tax_year).tax_savings
        ordinary_rate = self.tax_engine.combined_rate(client, TaxRegime.ORDINARY, tax_year)
        ltcg_rate = self.tax_engine.combined_rate(client, TaxRegime.LTCG, tax_year)
        sell_now_net = spread * shares * (1 - ordinary_rate)

        def hold_net(price: Decimal) -> Decimal:
            return max((price - strike_price) * shares, ZERO) * (1 - ltcg_rate)

        breakeven_price = strike_price
        test_price = current_price
        while test_price >= strike_price:
            if sell_now_net >= hold_net(test_price):
                breakeven_price = test_price
                break
            test_price -= BREAKEVEN_STEP

        points = []
        for decline in DECLINE_STEPS:
            price = current_price * (1 - decline / HUNDRED)
            if price < strike_price:
                continue
            points.append(BreakevenPoint(
                price_decline_percent=decline,
                stock_price=price,
                sell_now_net=sell_now_net,
                hold_net=hold_net(price),
            ))

        return BreakevenAnalysis(
            breakeven_price=breakeven_price,
            breakeven_decline_percent=(current_price - breakeven_price) / current_price * HUNDRED,
            tax_savings_at_current=savings,
            points=points,
        )

    def cashless(
        self,
        shares: Decimal,
        strike_price: Decimal,
        current_price: Decimal,
        client: Client,
        tax_year: int | None = None,
    ) -> CashlessExercise:
        """Exercise-and-sell-immediately: always a disqualifying disposition."""
        rates = self.tax_engine.get_effective_rates(client, tax_year)
        tax_rate = rates.fed_ordinary_rate + rates.state_rate
        proceeds = shares * current_price
        cost = shares * strike_price
        profit = proceeds - cost
        taxes = profit * tax_rate
        return CashlessExercise(
            shares=shares,
            total_proceeds=proceeds,
            total_cost=cost,
            gross_profit=profit,
            estimated_tax_rate=tax_rate,
            estimated_taxes=taxes,
            net_cash=profit - taxes,
        )
