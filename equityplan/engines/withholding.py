"""RSU withholding gap analysis for the current tax year."""

import logging
from datetime import date
from decimal import Decimal

from equityplan.engines.vesting import VestingScheduleGenerator
from equityplan.models.client import Client
from equityplan.models.enums import GrantType, TaxRegime
from equityplan.models.results import WithholdingAnalysis, WithholdingReport

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class WithholdingAnalyzer:
    """Compares elected RSU withholding with the estimated liability, per grant."""

    def __init__(self, generator: VestingScheduleGenerator | None = None) -> None:
        self.generator = generator or VestingScheduleGenerator()

    def analyze(self, client: Client, as_of: date, override_rate: Decimal | None = None) -> WithholdingReport:
        """Withholding vs. liability on RSU vests dated in as_of's calendar year.

        Args:
            client: The client.
            as_of: Evaluation date; selects the tax year.
            override_rate: Withholding percent to assume for grants with no
                elected rate. Defaults to the table's supplemental rate.
        """
        tax_engine = self.generator.tax_engine
        tax_year = as_of.year
        actual_rate = tax_engine.combined_rate(client, TaxRegime.ORDINARY, tax_year)
        fallback_percent = (
            override_rate if override_rate is not None else tax_engine.rates_for(tax_year).default_withholding_rate
        )

        report = WithholdingReport(tax_year=tax_year)
        for grant in client.grants:
            if grant.type != GrantType.RSU:
                continue
            schedule = self.generator.generate(grant, client, as_of)
            for warning in schedule.warnings:
                if warning not in report.warnings:
                    report.warnings.append(warning)

            vesting_value = sum(
                (e.gross_value for e in schedule.events if e.vest_date.year == tax_year), ZERO
            )
            if vesting_value <= 0:
                continue

            elected_percent = grant.withholding_rate if grant.withholding_rate is not None else fallback_percent
            elected_rate = elected_percent / HUNDRED
            analysis = WithholdingAnalysis(
                grant_id=grant.id,
                ticker=grant.ticker,
                total_vesting_value=vesting_value,
                elected_rate=elected_rate,
                elected_withholding=vesting_value * elected_rate,
                actual_rate=actual_rate,
                actual_tax_liability=vesting_value * actual_rate,
            )
            if analysis.is_underpaid:
                logger.debug("Grant %s underwithheld by %s in %d", grant.id, analysis.gap, tax_year)
            report.grants.append(analysis)

        return report
