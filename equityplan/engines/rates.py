"""Rate and AMT policy tables.

State income tax rates, federal LTCG rates keyed by ordinary bracket, the NIIT
surtax, and AMT exemption / phase-out amounts. Keyed by tax year and swappable
as a whole via RateTable. Never hardcode rates in computation functions.

Rates are top marginal rates used as flat planning rates, not a bracket-exact
computation.

Sources:
  - AMT: IRS Rev. Proc. 2023-34 (2024), Rev. Proc. 2024-40 (2025)
  - States: published top marginal rates for the tax year
"""

import json
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ValidationError

from equityplan.exceptions import RateTableError
from equityplan.models.enums import FilingStatus

# ---------------------------------------------------------------------------
# State income tax: {year: {state_code: rate}}
# States absent from the table fall back to DEFAULT_STATE_RATE with a warning.
# ---------------------------------------------------------------------------
_NO_INCOME_TAX = {
    "AK": Decimal("0"),
    "FL": Decimal("0"),
    "NV": Decimal("0"),
    "NH": Decimal("0"),
    "SD": Decimal("0"),
    "TN": Decimal("0"),
    "TX": Decimal("0"),
    "WA": Decimal("0"),
    "WY": Decimal("0"),
}

STATE_TAX_RATES: dict[int, dict[str, Decimal]] = {
    2024: {
        **_NO_INCOME_TAX,
        "AZ": Decimal("0.025"),
        "CA": Decimal("0.133"),
        "CO": Decimal("0.0425"),
        "CT": Decimal("0.0699"),
        "DC": Decimal("0.1075"),
        "GA": Decimal("0.0549"),
        "HI": Decimal("0.11"),
        "IL": Decimal("0.0495"),
        "IN": Decimal("0.0305"),
        "MA": Decimal("0.09"),
        "MD": Decimal("0.0575"),
        "MI": Decimal("0.0425"),
        "MN": Decimal("0.0985"),
        "NC": Decimal("0.045"),
        "NJ": Decimal("0.1075"),
        "NY": Decimal("0.109"),
        "OH": Decimal("0.035"),
        "OR": Decimal("0.099"),
        "PA": Decimal("0.0307"),
        "UT": Decimal("0.0455"),
        "VA": Decimal("0.0575"),
        "WI": Decimal("0.0765"),
    },
    2025: {
        **_NO_INCOME_TAX,
        "AZ": Decimal("0.025"),
        "CA": Decimal("0.133"),
        "CO": Decimal("0.044"),
        "CT": Decimal("0.0699"),
        "DC": Decimal("0.1075"),
        "GA": Decimal("0.0539"),
        "HI": Decimal("0.11"),
        "IL": Decimal("0.0495"),
        "IN": Decimal("0.03"),
        "MA": Decimal("0.09"),
        "MD": Decimal("0.0575"),
        "MI": Decimal("0.0425"),
        "MN": Decimal("0.0985"),
        "NC": Decimal("0.0425"),
        "NJ": Decimal("0.1075"),
        "NY": Decimal("0.109"),
        "OH": Decimal("0.035"),
        "OR": Decimal("0.099"),
        "PA": Decimal("0.0307"),
        "UT": Decimal("0.0455"),
        "VA": Decimal("0.0575"),
        "WI": Decimal("0.0765"),
    },
}

DEFAULT_STATE_RATE = Decimal("0")

# ---------------------------------------------------------------------------
# Federal LTCG rate keyed by the client's ordinary bracket (percent):
# [(bracket_floor, rate), ...] highest floor first.
# ---------------------------------------------------------------------------
FEDERAL_LTCG_BY_BRACKET: dict[int, list[tuple[Decimal, Decimal]]] = {
    2024: [
        (Decimal("35"), Decimal("0.20")),
        (Decimal("22"), Decimal("0.15")),
        (Decimal("0"), Decimal("0.00")),
    ],
    2025: [
        (Decimal("35"), Decimal("0.20")),
        (Decimal("22"), Decimal("0.15")),
        (Decimal("0"), Decimal("0.00")),
    ],
}

# ---------------------------------------------------------------------------
# NIIT (IRC Section 1411), applied as a flat planning surtax
# ---------------------------------------------------------------------------
NIIT_RATE = Decimal("0.038")

# ---------------------------------------------------------------------------
# Default RSU supplemental withholding election, in percent
# ---------------------------------------------------------------------------
DEFAULT_WITHHOLDING_RATE = Decimal("22")

# ---------------------------------------------------------------------------
# AMT exemption and phase-out start
# ---------------------------------------------------------------------------
AMT_EXEMPTION: dict[int, dict[FilingStatus, Decimal]] = {
    2024: {
        FilingStatus.SINGLE: Decimal("85700"),
        FilingStatus.MARRIED_JOINT: Decimal("133300"),
    },
    2025: {
        FilingStatus.SINGLE: Decimal("88100"),
        FilingStatus.MARRIED_JOINT: Decimal("137000"),
    },
}

AMT_PHASEOUT_START: dict[int, dict[FilingStatus, Decimal]] = {
    2024: {
        FilingStatus.SINGLE: Decimal("609350"),
        FilingStatus.MARRIED_JOINT: Decimal("1218700"),
    },
    2025: {
        FilingStatus.SINGLE: Decimal("626350"),
        FilingStatus.MARRIED_JOINT: Decimal("1252700"),
    },
}

# Exemption shrinks by 25 cents per dollar of income above the phase-out start
AMT_PHASEOUT_RATE = Decimal("0.25")

# Top AMT rate, used to estimate the cost of spread beyond the safe room
AMT_EXCESS_RATE = Decimal("0.28")


class RateTable(BaseModel):
    """One tax year's worth of policy rates."""

    tax_year: int
    version: str = "builtin"
    state_rates: dict[str, Decimal]
    default_state_rate: Decimal = DEFAULT_STATE_RATE
    ltcg_by_bracket: list[tuple[Decimal, Decimal]]
    niit_rate: Decimal = NIIT_RATE
    default_withholding_rate: Decimal = DEFAULT_WITHHOLDING_RATE
    amt_exemption: dict[FilingStatus, Decimal]
    amt_phaseout_start: dict[FilingStatus, Decimal]
    amt_phaseout_rate: Decimal = AMT_PHASEOUT_RATE
    amt_excess_rate: Decimal = AMT_EXCESS_RATE

    @classmethod
    def available_years(cls) -> list[int]:
        return sorted(STATE_TAX_RATES)

    @classmethod
    def for_year(cls, tax_year: int) -> "RateTable":
        """Built-in table for a year, else the nearest earlier year, else the earliest."""
        years = cls.available_years()
        earlier = [y for y in years if y <= tax_year]
        year = max(earlier) if earlier else years[0]
        return cls(
            tax_year=year,
            state_rates=dict(STATE_TAX_RATES[year]),
            ltcg_by_bracket=list(FEDERAL_LTCG_BY_BRACKET[year]),
            amt_exemption=dict(AMT_EXEMPTION[year]),
            amt_phaseout_start=dict(AMT_PHASEOUT_START[year]),
        )

    @classmethod
    def latest(cls) -> "RateTable":
        return cls.for_year(cls.available_years()[-1])

    @classmethod
    def from_json(cls, path: Path) -> "RateTable":
        """Load a swapped-in table from a JSON file shaped like this model."""
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise RateTableError(str(path), str(exc)) from exc
        try:
            table = cls.model_validate(data)
        except ValidationError as exc:
            raise RateTableError(str(path), str(exc)) from exc
        table.state_rates = {k.upper(): v for k, v in table.state_rates.items()}
        table.ltcg_by_bracket = sorted(table.ltcg_by_bracket, key=lambda row: row[0], reverse=True)
        return table

    def state_rate(self, state: str) -> Decimal | None:
        """Table rate for a state code, or None when the state isn't listed."""
        return self.state_rates.get(state.upper())

    def ltcg_rate(self, bracket_percent: Decimal) -> Decimal | None:
        for floor, rate in self.ltcg_by_bracket:
            if bracket_percent >= floor:
                return rate
        return None
