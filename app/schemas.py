from datetime import date as date_type
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.currency import is_supported
from app.models import MemberRole, RsvpStatus
from app.splits import AssignmentInput, SplitType


def _currency_code(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.upper()
    if not is_supported(v):
        raise ValueError("Unsupported currency")
    return v


# --- Trip ---

class CreateTripIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    base_currency: str = "GBP"

    @field_validator("base_currency")
    @classmethod
    def check_currency(cls, v):
        return _currency_code(v)


# --- Members ---

class AddMemberIn(BaseModel):
    user_id: str
    email: str | None = None
    display_name: str | None = None
    role: MemberRole = MemberRole.MEMBER
    rsvp_status: RsvpStatus = RsvpStatus.PENDING


class UpdateMemberIn(BaseModel):
    role: MemberRole | None = None
    rsvp_status: RsvpStatus | None = None


# --- Spends ---

class CreateSpendIn(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    amount: int = Field(ge=0)  # minor units of `currency`
    currency: str | None = None  # defaults to the trip base currency
    fx_rate: Decimal | None = Field(default=None, gt=0)
    paid_by: str | None = None  # defaults to the caller
    date: date_type | None = None
    notes: str | None = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return _currency_code(v)


class UpdateSpendIn(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=500)
    amount: int | None = Field(default=None, ge=0)
    currency: str | None = None
    fx_rate: Decimal | None = Field(default=None, gt=0)
    paid_by: str | None = None
    date: date_type | None = None
    notes: str | None = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return _currency_code(v)


# --- Assignments ---

class AssignmentIn(BaseModel):
    user_id: str
    split_type: SplitType = SplitType.EQUAL
    split_value: Decimal | None = None

    def to_input(self) -> AssignmentInput:
        return AssignmentInput(user_id=self.user_id, split_type=self.split_type, split_value=self.split_value)


class AssignmentsIn(BaseModel):
    assignments: list[AssignmentIn]


class FinalizeSpendIn(BaseModel):
    force: bool = False


# --- Spend items ---

class CreateSpendItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    cost: int = Field(ge=0)  # minor units of the spend's currency
    user_id: str | None = None  # assignee


class UpdateSpendItemIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    cost: int | None = Field(default=None, ge=0)
    user_id: str | None = None  # null unassigns the item


# --- Settlements ---

class PaymentIn(BaseModel):
    amount: int = Field(gt=0)
    paid_at: date_type | None = None
    payment_method: str | None = Field(default=None, max_length=50)
    payment_reference: str | None = Field(default=None, max_length=255)
    notes: str | None = None
