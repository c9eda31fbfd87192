"""Derived value objects produced by the engines. Never persisted."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from equityplan.models.enums import (
    AllocationMethod,
    DispositionType,
    GrantType,
    HoldingPeriod,
    RiskLevel,
    TaxRegime,
    WarningCategory,
)

ZERO = Decimal("0")


class EngineWarning(BaseModel):
    """Non-fatal note that a documented default replaced missing reference data."""

    category: WarningCategory
    message: str
    grant_id: str | None = None


class EffectiveRates(BaseModel):
    fed_ordinary_rate: Decimal
    fed_ltcg_rate: Decimal
    state_rate: Decimal
    niit_rate: Decimal
    warnings: list[EngineWarning] = Field(default_factory=list)


class TaxBreakdown(BaseModel):
    regime: TaxRegime = TaxRegime.ORDINARY
    taxable_amount: Decimal = ZERO
    fed_rate: Decimal = ZERO
    fed_amount: Decimal = ZERO
    state_rate: Decimal = ZERO
    state_amount: Decimal = ZERO
    niit_rate: Decimal = ZERO
    niit_amount: Decimal = ZERO
    total_tax: Decimal = ZERO
    warnings: list[EngineWarning] = Field(default_factory=list)

    @property
    def effective_rate(self) -> Decimal:
        if self.taxable_amount <= 0:
            return ZERO
        return self.total_tax / self.taxable_amount

    def __add__(self, other: "TaxBreakdown") -> "TaxBreakdown":
        return TaxBreakdown(
            regime=self.regime,
            taxable_amount=self.taxable_amount + other.taxable_amount,
            fed_rate=self.fed_rate,
            fed_amount=self.fed_amount + other.fed_amount,
            state_rate=self.state_rate,
            state_amount=self.state_amount + other.state_amount,
            niit_rate=self.niit_rate,
            niit_amount=self.niit_amount + other.niit_amount,
            total_tax=self.total_tax + other.total_tax,
            warnings=self.warnings + [w for w in other.warnings if w not in self.warnings],
        )


class VestingEvent(BaseModel):
    grant_id: str
    grant_type: GrantType
    ticker: str
    company_name: str = ""
    external_grant_id: str | None = None
    vest_date: date
    shares: Decimal
    price_at_vest: Decimal
    gross_value: Decimal
    withholding_amount: Decimal = ZERO
    elected_withholding_rate: Decimal = ZERO
    shares_sold_to_cover: Decimal = ZERO
    net_shares: Decimal
    net_value: Decimal
    tax_gap: Decimal = ZERO
    amt_exposure: Decimal = ZERO
    tax_breakdown: TaxBreakdown = Field(default_factory=TaxBreakdown)
    is_past: bool

    @property
    def is_covered(self) -> bool:
        """Withholding meets or exceeds the estimated liability."""
        return self.tax_gap <= 0


class AggregatedVestingEvent(VestingEvent):
    """A vesting event carrying its client context for cross-client views."""

    client_id: str
    client_name: str


class VestingSchedule(BaseModel):
    grant_id: str
    events: list[VestingEvent] = Field(default_factory=list)
    warnings: list[EngineWarning] = Field(default_factory=list)

    @property
    def past_events(self) -> list[VestingEvent]:
        return [e for e in self.events if e.is_past]

    @property
    def future_events(self) -> list[VestingEvent]:
        return [e for e in self.events if not e.is_past]


class GrantStatus(BaseModel):
    grant_id: str
    total: Decimal
    vested_total: Decimal
    exercised: Decimal
    available: Decimal
    unvested: Decimal

    @property
    def label(self) -> str:
        if self.vested_total >= self.total:
            return "Fully Vested"
        if self.vested_total > 0:
            return "Partially Vested"
        return "Not Vested"


class AMTStats(BaseModel):
    tax_year: int
    total_capacity: Decimal
    existing_used: Decimal
    room: Decimal
    warnings: list[EngineWarning] = Field(default_factory=list)


class YearExercisePlan(BaseModel):
    year: int
    amt_room: Decimal
    planned_shares: Decimal
    planned_spread: Decimal
    amt_remaining: Decimal
    exercise_cost: Decimal
    potential_tax_savings: Decimal


class MultiYearExercisePlan(BaseModel):
    grant_id: str
    spread_per_share: Decimal
    max_safe_shares_per_year: Decimal
    years: list[YearExercisePlan] = Field(default_factory=list)
    remaining_shares: Decimal
    single_year_ordinary_tax: Decimal
    max_tax_savings: Decimal

    @property
    def total_savings(self) -> Decimal:
        return sum((y.potential_tax_savings for y in self.years), ZERO)


class ISOQualification(BaseModel):
    qualifying_date: date
    is_qualified: bool
    months_remaining: int
    progress_percent: Decimal


class ESPPQualification(BaseModel):
    grant_id: str
    ticker: str
    purchase_date: date
    offering_start_date: date
    qualifying_date: date
    is_qualified: bool
    days_remaining: int
    progress_percent: Decimal
    shares: Decimal
    purchase_price: Decimal
    fmv_at_purchase: Decimal
    fmv_at_offering_start: Decimal
    total_gain: Decimal
    disqualified_ordinary_income: Decimal
    disqualified_capital_gain: Decimal
    disqualified_tax: Decimal
    qualified_ordinary_income: Decimal
    qualified_capital_gain: Decimal
    qualified_tax: Decimal

    @property
    def tax_savings(self) -> Decimal:
        return self.disqualified_tax - self.qualified_tax


class LotTranche(BaseModel):
    """Shares attributed to one vest tranche by the allocation estimator."""

    vest_date: date
    shares: Decimal
    holding_period: HoldingPeriod


class LotAllocation(BaseModel):
    """Estimated short/long-term split of held RSU shares.

    This is a heuristic reconstruction from the vesting schedule, not
    brokerage cost-basis data.
    """

    grant_id: str
    method: AllocationMethod
    shares_held: Decimal
    short_term: Decimal
    long_term: Decimal
    unattributed: Decimal = ZERO
    current_value: Decimal
    unrealized_gain: Decimal | None = None
    tranches: list[LotTranche] = Field(default_factory=list)
    warnings: list[EngineWarning] = Field(default_factory=list)

    @property
    def has_gain_data(self) -> bool:
        return self.unrealized_gain is not None


class ISOLot(BaseModel):
    """One planned ISO exercise, tracked as its own lot."""

    exercise_id: str
    grant_id: str
    ticker: str
    shares: Decimal
    grant_date: date
    exercise_date: date
    exercise_price: Decimal
    current_price: Decimal
    current_value: Decimal
    qualification: ISOQualification


class HoldingsSummary(BaseModel):
    shares: Decimal = ZERO
    value: Decimal = ZERO
    short_term: Decimal = ZERO
    long_term: Decimal = ZERO
    total_gain: Decimal = ZERO
    has_gain_data: bool = False
    rsu_lots: list[LotAllocation] = Field(default_factory=list)
    iso_lots: list[ISOLot] = Field(default_factory=list)
    warnings: list[EngineWarning] = Field(default_factory=list)


class ISOScenario(BaseModel):
    name: str
    description: str
    disposition: DispositionType
    shares: Decimal
    strike_price: Decimal
    fmv_at_exercise: Decimal
    sale_price: Decimal
    ordinary_income: Decimal
    capital_gain: Decimal
    amt_preference: Decimal
    taxes: TaxBreakdown
    net_profit: Decimal


class ScenarioComparison(BaseModel):
    disqualified: ISOScenario
    qualified: ISOScenario

    @property
    def tax_savings(self) -> Decimal:
        """Net-profit gain from holding for a qualifying disposition."""
        return self.qualified.net_profit - self.disqualified.net_profit


class BreakevenPoint(BaseModel):
    price_decline_percent: Decimal
    stock_price: Decimal
    sell_now_net: Decimal
    hold_net: Decimal

    @property
    def difference(self) -> Decimal:
        return self.hold_net - self.sell_now_net


class BreakevenAnalysis(BaseModel):
    breakeven_price: Decimal
    breakeven_decline_percent: Decimal
    tax_savings_at_current: Decimal
    points: list[BreakevenPoint] = Field(default_factory=list)


class CashlessExercise(BaseModel):
    shares: Decimal
    total_proceeds: Decimal
    total_cost: Decimal
    gross_profit: Decimal
    estimated_tax_rate: Decimal
    estimated_taxes: Decimal
    net_cash: Decimal


class WindowSummary(BaseModel):
    count: int = 0
    gross: Decimal = ZERO
    tax_gap: Decimal = ZERO
    shares: Decimal = ZERO
    net_value: Decimal = ZERO
    amt_exposure: Decimal = ZERO


class GrantYearSummary(BaseModel):
    year: int
    total_shares: Decimal = ZERO
    total_initial_value: Decimal = ZERO
    total_current_value: Decimal = ZERO
    count: int = 0


class VestingYearSummary(BaseModel):
    year: int
    vested_shares: Decimal = ZERO
    gross_value: Decimal = ZERO


class QuarterlyEstimate(BaseModel):
    quarter: str
    due_date: date
    vesting_income: Decimal = ZERO
    iso_spread: Decimal = ZERO
    estimated_tax: Decimal = ZERO
    withholding_credit: Decimal = ZERO
    payment_due: Decimal = ZERO
    is_past: bool = False


class TickerConcentration(BaseModel):
    ticker: str
    shares: Decimal = ZERO
    value: Decimal = ZERO
    grant_types: list[GrantType] = Field(default_factory=list)
    percent_of_portfolio: Decimal = ZERO
    percent_of_equity: Decimal = ZERO


class ConcentrationReport(BaseModel):
    """Single-stock exposure of a client's equity holdings; positions largest first."""

    positions: list[TickerConcentration] = Field(default_factory=list)
    total_equity_value: Decimal = ZERO
    other_investments: Decimal = ZERO
    net_worth: Decimal | None = None
    risk_level: RiskLevel = RiskLevel.LOW

    @property
    def total_portfolio(self) -> Decimal:
        return self.total_equity_value + self.other_investments

    @property
    def largest_position(self) -> TickerConcentration | None:
        return self.positions[0] if self.positions else None

    @property
    def max_concentration(self) -> Decimal:
        return max((p.percent_of_portfolio for p in self.positions), default=ZERO)

    @property
    def equity_percent_of_net_worth(self) -> Decimal | None:
        if self.net_worth is None or self.net_worth <= 0:
            return None
        return self.total_equity_value / self.net_worth * 100


class WithholdingAnalysis(BaseModel):
    grant_id: str
    ticker: str
    total_vesting_value: Decimal
    elected_rate: Decimal
    elected_withholding: Decimal
    actual_rate: Decimal
    actual_tax_liability: Decimal

    @property
    def gap(self) -> Decimal:
        return self.actual_tax_liability - self.elected_withholding

    @property
    def is_underpaid(self) -> bool:
        return self.gap > 0

    @property
    def recommended_supplemental(self) -> Decimal:
        return max(self.gap, ZERO)

    @property
    def quarterly_payment(self) -> Decimal:
        return max(self.gap, ZERO) / 4


class WithholdingReport(BaseModel):
    tax_year: int
    grants: list[WithholdingAnalysis] = Field(default_factory=list)
    warnings: list[EngineWarning] = Field(default_factory=list)

    @property
    def total_vesting_value(self) -> Decimal:
        return sum((g.total_vesting_value for g in self.grants), ZERO)

    @property
    def total_withholding(self) -> Decimal:
        return sum((g.elected_withholding for g in self.grants), ZERO)

    @property
    def total_actual_tax(self) -> Decimal:
        return sum((g.actual_tax_liability for g in self.grants), ZERO)

    @property
    def total_gap(self) -> Decimal:
        return self.total_actual_tax - self.total_withholding

    @property
    def quarterly_payment(self) -> Decimal:
        """Estimated payment per quarter to close an underwithheld year."""
        return max(self.total_gap, ZERO) / 4
