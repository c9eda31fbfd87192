"""Qualifying-disposition tracking for ISO exercises and ESPP purchases.

ISO: qualifying once held 1 year from exercise AND 2 years from grant.
ESPP: qualifying once held 1 year from purchase AND 2 years from offering start
(IRS Pub. 525, Form 3922 Instructions).
"""

from datetime import date, timedelta
from decimal import ROUND_CEILING, Decimal

from equityplan.dates import DAYS_PER_MONTH, add_months, add_years
from equityplan.engines.tax import TaxEngine
from equityplan.models.client import Client
from equityplan.models.enums import DispositionType, TaxRegime
from equityplan.models.grant import ESPPGrant
from equityplan.models.results import ESPPQualification, ISOQualification

ZERO = Decimal("0")
HUNDRED = Decimal("100")

ISO_DAYS_FROM_EXERCISE = 365
ISO_DAYS_FROM_GRANT = 730
ESPP_DEFAULT_OFFERING_MONTHS = 6


def _progress(elapsed_days: int, holding_days: int, is_qualified: bool) -> Decimal:
    if holding_days <= 0:
        return HUNDRED if is_qualified else ZERO
    pct = Decimal(elapsed_days) * HUNDRED / Decimal(holding_days)
    return min(max(pct, ZERO), HUNDRED)


class ISOQualificationTracker:
    """Qualifying-disposition status for one ISO exercise."""

    def qualifying_date(self, grant_date: date, exercise_date: date) -> date:
        return max(
            exercise_date + timedelta(days=ISO_DAYS_FROM_EXERCISE),
            grant_date + timedelta(days=ISO_DAYS_FROM_GRANT),
        )

    def compute(self, grant_date: date, exercise_date: date, today: date) -> ISOQualification:
        qualifying = self.qualifying_date(grant_date, exercise_date)
        is_qualified = today >= qualifying

        if is_qualified:
            months_remaining = 0
        else:
            days_left = Decimal((qualifying - today).days)
            months_remaining = int((days_left / DAYS_PER_MONTH).to_integral_value(rounding=ROUND_CEILING))

        return ISOQualification(
            qualifying_date=qualifying,
            is_qualified=is_qualified,
            months_remaining=months_remaining,
            progress_percent=_progress(
                (today - exercise_date).days,
                (qualifying - exercise_date).days,
                is_qualified,
            ),
        )

    def disposition_type(self, grant_date: date, exercise_date: date, sale_date: date) -> DispositionType:
        if sale_date >= self.qualifying_date(grant_date, exercise_date):
            return DispositionType.QUALIFYING
        return DispositionType.DISQUALIFYING


class ESPPQualificationTracker:
    """Holding-period status and qualified-vs-disqualified tax comparison for ESPP lots."""

    def __init__(self, tax_engine: TaxEngine | None = None) -> None:
        self.tax_engine = tax_engine or TaxEngine()

    def offering_start(self, grant: ESPPGrant) -> date:
        return grant.offering_start_date or add_months(grant.purchase_date, -ESPP_DEFAULT_OFFERING_MONTHS)

    def qualifying_date(self, grant: ESPPGrant) -> date:
        return max(add_years(self.offering_start(grant), 2), add_years(grant.purchase_date, 1))

    def compute(self, grant: ESPPGrant, client: Client, today: date) -> ESPPQualification:
        purchase_date = grant.purchase_date
        qualifying = self.qualifying_date(grant)
        is_qualified = today >= qualifying

        shares = grant.total_shares
        purchase_price = grant.purchase_price if grant.purchase_price is not None else (grant.grant_price or ZERO)
        fmv_at_purchase = grant.fmv_at_purchase or grant.current_price
        fmv_at_offering = grant.fmv_at_offering_start or fmv_at_purchase
        total_gain = (grant.current_price - purchase_price) * shares

        # Disqualifying: bargain element at purchase is ordinary income
        disq_ordinary = (fmv_at_purchase - purchase_price) * shares
        disq_capital = max((grant.current_price - fmv_at_purchase) * shares, ZERO)

        # Qualifying: lesser of actual gain and the offering-date discount
        offering_discount = fmv_at_offering * grant.discount_percent / HUNDRED * shares
        qual_ordinary = max(min(total_gain, offering_discount), ZERO)
        qual_capital = max(total_gain - qual_ordinary, ZERO)

        disq_tax = self._tax(disq_ordinary, disq_capital, client, today.year)
        qual_tax = self._tax(qual_ordinary, qual_capital, client, today.year)

        return ESPPQualification(
            grant_id=grant.id,
            ticker=grant.ticker,
            purchase_date=purchase_date,
            offering_start_date=self.offering_start(grant),
            qualifying_date=qualifying,
            is_qualified=is_qualified,
            days_remaining=0 if is_qualified else (qualifying - today).days,
            progress_percent=_progress(
                (today - purchase_date).days,
                (qualifying - purchase_date).days,
                is_qualified,
            ),
            shares=shares,
            purchase_price=purchase_price,
            fmv_at_purchase=fmv_at_purchase,
            fmv_at_offering_start=fmv_at_offering,
            total_gain=total_gain,
            disqualified_ordinary_income=disq_ordinary,
            disqualified_capital_gain=disq_capital,
            disqualified_tax=disq_tax,
            qualified_ordinary_income=qual_ordinary,
            qualified_capital_gain=qual_capital,
            qualified_tax=qual_tax,
        )

    def _tax(self, ordinary: Decimal, capital: Decimal, client: Client, tax_year: int) -> Decimal:
        return (
            self.tax_engine.compute(ordinary, client, TaxRegime.ORDINARY, tax_year).total_tax
            + self.tax_engine.compute(capital, client, TaxRegime.LTCG, tax_year).total_tax
        )
