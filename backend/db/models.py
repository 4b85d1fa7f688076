"""
Avoid the Rain Database Models

Tables:
  Accounts (1-3):
  1. teams            - Subscription holder (plan, billing status, card credits)
  2. users            - Account owners, one team each
  3. user_addresses   - Return addresses; one default per user

  Scheduling (4-5):
  4. recipients       - People/couples a user sends cards to
  5. occasions        - Dated events per recipient (custom, holiday, Just Because)

  Fulfillment (6):
  6. orders           - Immutable snapshot materialized from one occasion per year
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from db.session import Base

ADDRESS_STATUSES = ("pending", "verified", "corrected", "invalid", "error")
ORDER_STATUSES = ("pending", "printed", "mailed", "cancelled")
CARD_TYPES = ("subscription", "bulk", "individual")

# ─── 1. Teams ───────────────────────────────────────────────────────────────


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    stripe_customer_id = Column(Text, unique=True)
    stripe_subscription_id = Column(Text, unique=True)
    stripe_product_id = Column(Text)
    plan_name = Column(String(50))
    subscription_status = Column(String(20))
    card_credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="team")


# ─── 2. Users ───────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    team_id = Column(Integer, ForeignKey("teams.id"))
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(20))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    team = relationship("Team", back_populates="users")
    addresses = relationship("UserAddress", back_populates="user", cascade="all, delete-orphan")
    recipients = relationship("Recipient", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.email


# ─── 3. User Addresses ──────────────────────────────────────────────────────


class UserAddress(Base):
    __tablename__ = "user_addresses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    street = Column(String(255), nullable=False)
    apartment = Column(String(100))
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False, default="United States")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="addresses")

    __table_args__ = (Index("ix_user_addresses_user", "user_id"),)


# ─── 4. Recipients ──────────────────────────────────────────────────────────


class Recipient(Base):
    __tablename__ = "recipients"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    relationship_type = Column("relationship", String(50), nullable=False)  # Friend, Family, Romantic, Professional
    street = Column(String(255), nullable=False)
    apartment = Column(String(100))
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False, default="United States")
    address_status = Column(String(20), nullable=False, default="pending")
    address_notes = Column(Text)
    address_verified_at = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="recipients")
    occasions = relationship("Occasion", back_populates="recipient", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_recipients_user", "user_id"),
        CheckConstraint(
            "address_status IN ('pending', 'verified', 'corrected', 'invalid', 'error')",
            name="ck_recipient_address_status",
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ─── 5. Occasions ───────────────────────────────────────────────────────────


class Occasion(Base):
    __tablename__ = "occasions"

    id = Column(Integer, primary_key=True)
    recipient_id = Column(Integer, ForeignKey("recipients.id", ondelete="CASCADE"), nullable=False)
    occasion_type = Column(String(50), nullable=False)  # Birthday, Anniversary, holiday name, Just Because
    occasion_date = Column(Date, nullable=False)
    notes = Column(Text)
    is_just_because = Column(Boolean, nullable=False, default=False)
    computed_send_date = Column(Date)  # hidden send date for Just Because
    card_variation = Column(String(50))  # thinking_of_you, romantic, recognition
    last_sent_year = Column(Integer)  # guards one Just Because order per year
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    recipient = relationship("Recipient", back_populates="occasions")

    __table_args__ = (
        Index("ix_occasions_recipient", "recipient_id"),
        CheckConstraint(
            "is_just_because = false OR computed_send_date IS NOT NULL",
            name="ck_occasion_just_because_date",
        ),
    )


# ─── 6. Orders ──────────────────────────────────────────────────────────────


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    recipient_id = Column(Integer, ForeignKey("recipients.id", ondelete="SET NULL"))
    occasion_id = Column(Integer, ForeignKey("occasions.id", ondelete="SET NULL"))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"))
    card_type = Column(String(20), nullable=False, default="subscription")
    fulfillment_year = Column(Integer, nullable=False)
    occasion_date = Column(Date, nullable=False)
    print_date = Column(DateTime)
    mail_date = Column(DateTime)
    status = Column(String(20), nullable=False, default="pending")

    # Recipient address snapshot
    recipient_first_name = Column(String(100), nullable=False)
    recipient_last_name = Column(String(100), nullable=False)
    recipient_street = Column(String(255), nullable=False)
    recipient_apartment = Column(String(100))
    recipient_city = Column(String(100), nullable=False)
    recipient_state = Column(String(50), nullable=False)
    recipient_zip = Column(String(20), nullable=False)

    # Return address snapshot
    return_name = Column(String(200), nullable=False)
    return_street = Column(String(255), nullable=False)
    return_apartment = Column(String(100))
    return_city = Column(String(100), nullable=False)
    return_state = Column(String(50), nullable=False)
    return_zip = Column(String(20), nullable=False)

    # Occasion snapshot
    occasion_type = Column(String(50), nullable=False)
    occasion_notes = Column(Text)
    card_variation = Column(String(50))

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("occasion_id", "fulfillment_year", name="uq_order_occasion_year"),
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status", "status"),
        CheckConstraint("status IN ('pending', 'printed', 'mailed', 'cancelled')", name="ck_order_status"),
        CheckConstraint("card_type IN ('subscription', 'bulk', 'individual')", name="ck_order_card_type"),
    )

    @property
    def recipient_name(self) -> str:
        return f"{self.recipient_first_name} {self.recipient_last_name}".strip()
