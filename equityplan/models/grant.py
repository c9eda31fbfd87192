"""Grant models, one tagged variant per equity kind.

Each variant carries only the fields its kind needs and validates them at
construction, so the engines can trust what they receive.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator

from equityplan.exceptions import InvalidInputError
from equityplan.models.enums import GrantType, VestingScheduleType


class CustomVestingDate(BaseModel):
    vest_date: date
    shares: Decimal = Field(gt=0)


class VestingPrice(BaseModel):
    """Recorded FMV for a past vest date (broker statement, API, or manual entry)."""

    vest_date: date
    price_at_vest: Decimal = Field(gt=0)
    shares_vested: Decimal | None = None
    source: str = "manual"


class GrantBase(BaseModel):
    id: str
    ticker: str
    company_name: str = ""
    total_shares: Decimal = Field(gt=0)
    grant_date: date
    vesting_schedule: VestingScheduleType = VestingScheduleType.STANDARD_4Y_1Y_CLIFF
    current_price: Decimal = Field(gt=0)
    grant_price: Decimal | None = Field(default=None, ge=0)
    custom_vesting_dates: list[CustomVestingDate] = Field(default_factory=list)
    vesting_prices: list[VestingPrice] = Field(default_factory=list)
    external_grant_id: str | None = None

    @model_validator(mode="after")
    def _check_custom_schedule(self):
        if self.vesting_schedule != VestingScheduleType.CUSTOM:
            return self
        if not self.custom_vesting_dates:
            raise InvalidInputError("custom_vesting_dates", "custom schedule requires at least one date")
        dates = [d.vest_date for d in self.custom_vesting_dates]
        if len(set(dates)) != len(dates):
            raise InvalidInputError("custom_vesting_dates", "vesting dates must be unique")
        scheduled = sum((d.shares for d in self.custom_vesting_dates), Decimal("0"))
        if scheduled != self.total_shares:
            raise InvalidInputError(
                "custom_vesting_dates",
                f"scheduled shares {scheduled} do not sum to total_shares {self.total_shares}",
            )
        return self

    @property
    def price_history(self) -> dict[date, Decimal]:
        return {p.vest_date: p.price_at_vest for p in self.vesting_prices}

    @property
    def label(self) -> str:
        return self.external_grant_id or self.id


class RSUGrant(GrantBase):
    type: Literal["RSU"] = "RSU"
    withholding_rate: Decimal | None = Field(default=None, ge=0, le=100)
    custom_held_shares: Decimal | None = Field(default=None, ge=0)
    average_cost_basis: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_basis_override(self):
        if self.average_cost_basis is not None and self.custom_held_shares is None:
            raise InvalidInputError(
                "average_cost_basis", "a cost basis override requires custom_held_shares"
            )
        return self


class _OptionGrant(GrantBase):
    strike_price: Decimal = Field(ge=0)

    @property
    def spread_per_share(self) -> Decimal:
        """Current in-the-money amount per share, floored at zero."""
        return max(self.current_price - self.strike_price, Decimal("0"))


class ISOGrant(_OptionGrant):
    type: Literal["ISO"] = "ISO"


class NSOGrant(_OptionGrant):
    type: Literal["NSO"] = "NSO"


class ESPPGrant(GrantBase):
    type: Literal["ESPP"] = "ESPP"
    vesting_schedule: VestingScheduleType = VestingScheduleType.IMMEDIATE
    purchase_price: Decimal | None = Field(default=None, ge=0)
    discount_percent: Decimal = Field(default=Decimal("15"), ge=0, le=100)
    offering_start_date: date | None = None
    offering_end_date: date | None = None
    fmv_at_offering_start: Decimal | None = Field(default=None, gt=0)
    fmv_at_purchase: Decimal | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_offering_window(self):
        if (
            self.offering_start_date is not None
            and self.offering_end_date is not None
            and self.offering_end_date < self.offering_start_date
        ):
            raise InvalidInputError("offering_end_date", "offering ends before it starts")
        return self

    @property
    def purchase_date(self) -> date:
        return self.offering_end_date or self.grant_date


Grant = Annotated[
    RSUGrant | ISOGrant | NSOGrant | ESPPGrant,
    Field(discriminator="type"),
]

OPTION_TYPES = (GrantType.ISO, GrantType.NSO)
