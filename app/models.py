import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, String, Integer, Numeric, Date, DateTime, ForeignKey, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.balances import SpendStatus
from app.database import Base
from app.splits import SplitType


def new_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MemberRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class RsvpStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    MAYBE = "MAYBE"


class SettlementStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # identity provider uid
    email = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Trip(Base):
    __tablename__ = "trips"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    base_currency = Column(String(3), nullable=False, default="GBP")
    created_by_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    members = relationship("TripMember", back_populates="trip", cascade="all, delete-orphan")
    spends = relationship("Spend", back_populates="trip", cascade="all, delete-orphan")
    settlements = relationship("Settlement", back_populates="trip", cascade="all, delete-orphan")


class TripMember(Base):
    __tablename__ = "trip_members"

    id = Column(String, primary_key=True, default=new_uuid)
    trip_id = Column(String, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(10), nullable=False, default=MemberRole.MEMBER.value)
    rsvp_status = Column(String(10), nullable=False, default=RsvpStatus.PENDING.value)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("trip_id", "user_id"),)

    trip = relationship("Trip", back_populates="members")
    user = relationship("User")


class Spend(Base):
    __tablename__ = "spends"

    id = Column(String, primary_key=True, default=new_uuid)
    trip_id = Column(String, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    paid_by_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Integer, nullable=False)  # minor units of `currency`
    currency = Column(String(3), nullable=False)
    fx_rate = Column(Numeric(18, 8), nullable=False, default=1)
    normalized_amount = Column(Integer, nullable=False)  # minor units of the trip base currency
    status = Column(String(10), nullable=False, default=SpendStatus.OPEN.value)
    date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    trip = relationship("Trip", back_populates="spends")
    assignments = relationship(
        "SpendAssignment",
        back_populates="spend",
        cascade="all, delete-orphan",
        order_by="SpendAssignment.position",
    )
    items = relationship(
        "SpendItem",
        back_populates="spend",
        cascade="all, delete-orphan",
        order_by="SpendItem.created_at",
    )


class SpendAssignment(Base):
    __tablename__ = "spend_assignments"

    id = Column(String, primary_key=True, default=new_uuid)
    spend_id = Column(String, ForeignKey("spends.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    split_type = Column(String(12), nullable=False, default=SplitType.EQUAL.value)
    split_value = Column(Numeric(18, 6), nullable=True)
    share_amount = Column(Integer, nullable=False)
    normalized_share_amount = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)  # submission order, decides EQUAL remainders
    item_linked = Column(Boolean, nullable=False, default=False)  # EXACT share kept in sync with the user's items
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("spend_id", "user_id"),)

    spend = relationship("Spend", back_populates="assignments")


class SpendItem(Base):
    __tablename__ = "spend_items"

    id = Column(String, primary_key=True, default=new_uuid)
    spend_id = Column(String, ForeignKey("spends.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cost = Column(Integer, nullable=False)  # minor units of the spend's currency
    assigned_user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    spend = relationship("Spend", back_populates="items")


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(String, primary_key=True, default=new_uuid)
    trip_id = Column(String, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    from_user_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    to_user_id = Column(String, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=SettlementStatus.PENDING.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    trip = relationship("Trip", back_populates="settlements")
    payments = relationship(
        "Payment",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="Payment.paid_at.desc()",
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=new_uuid)
    settlement_id = Column(String, ForeignKey("settlements.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Integer, nullable=False)
    paid_at = Column(Date, nullable=False)
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    settlement = relationship("Settlement", back_populates="payments")


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(String, primary_key=True, default=new_uuid)
    trip_id = Column(String, ForeignKey("trips.id", ondelete="CASCADE"), nullable=True, index=True)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(String, nullable=False)
    event_type = Column(String(32), nullable=False)
    actor_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"

    id = Column(String, primary_key=True, default=new_uuid)
    date = Column(Date, nullable=False)
    base_currency = Column(String(3), nullable=False)
    target_currency = Column(String(3), nullable=False)
    rate = Column(Numeric(18, 8), nullable=False)
    fetched_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("date", "base_currency", "target_currency"),)
