"""Client tax profile and planned ISO exercises."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from equityplan.exceptions import GrantNotFoundError
from equityplan.models.enums import FilingStatus
from equityplan.models.grant import Grant


class PlannedExercise(BaseModel):
    id: str
    grant_id: str
    grant_ticker: str | None = None
    shares: Decimal = Field(gt=0)
    exercise_date: date
    exercise_price: Decimal = Field(ge=0)
    fmv_at_exercise: Decimal = Field(ge=0)
    amt_exposure: Decimal = Field(default=Decimal("0"), ge=0)
    estimated_cost: Decimal = Field(default=Decimal("0"), ge=0)


class Client(BaseModel):
    id: str
    name: str
    state: str = ""
    filing_status: FilingStatus = FilingStatus.SINGLE
    tax_bracket: Decimal = Field(ge=0, le=100)  # federal ordinary bracket, in percent
    estimated_income: Decimal | None = Field(default=None, ge=0)
    custom_state_tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    custom_ltcg_tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    custom_amt_safe_harbor: Decimal | None = Field(default=None, ge=0)
    grants: list[Grant] = Field(default_factory=list)
    planned_exercises: list[PlannedExercise] = Field(default_factory=list)

    @field_validator("state")
    @classmethod
    def _normalize_state(cls, value: str) -> str:
        return value.strip().upper()

    def get_grant(self, grant_id: str) -> Grant:
        for grant in self.grants:
            if grant.id == grant_id or grant.external_grant_id == grant_id:
                return grant
        raise GrantNotFoundError(grant_id)

    def exercises_for(self, grant_id: str) -> list[PlannedExercise]:
        return [ex for ex in self.planned_exercises if ex.grant_id == grant_id]
