"""
Initial schema - accounts, recipients, occasions, orders

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # 1. Teams
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("stripe_customer_id", sa.Text, unique=True),
        sa.Column("stripe_subscription_id", sa.Text, unique=True),
        sa.Column("stripe_product_id", sa.Text),
        sa.Column("plan_name", sa.String(50)),
        sa.Column("subscription_status", sa.String(20)),
        sa.Column("card_credits", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )

    # 2. Users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id")),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("phone", sa.String(20)),
        *_timestamps(),
    )

    # 3. User addresses
    op.create_table(
        "user_addresses",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("street", sa.String(255), nullable=False),
        sa.Column("apartment", sa.String(100)),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(50), nullable=False),
        sa.Column("zip", sa.String(20), nullable=False),
        sa.Column("country", sa.String(100), nullable=False, server_default="United States"),
        *_timestamps(),
    )
    op.create_index("ix_user_addresses_user", "user_addresses", ["user_id"])

    # 4. Recipients
    op.create_table(
        "recipients",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("relationship", sa.String(50), nullable=False),
        sa.Column("street", sa.String(255), nullable=False),
        sa.Column("apartment", sa.String(100)),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(50), nullable=False),
        sa.Column("zip", sa.String(20), nullable=False),
        sa.Column("country", sa.String(100), nullable=False, server_default="United States"),
        sa.Column("address_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("address_notes", sa.Text),
        sa.Column("address_verified_at", sa.DateTime),
        sa.Column("notes", sa.Text),
        *_timestamps(),
        sa.CheckConstraint(
            "address_status IN ('pending', 'verified', 'corrected', 'invalid', 'error')",
            name="ck_recipient_address_status",
        ),
    )
    op.create_index("ix_recipients_user", "recipients", ["user_id"])

    # 5. Occasions
    op.create_table(
        "occasions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("recipient_id", sa.Integer, sa.ForeignKey("recipients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("occasion_type", sa.String(50), nullable=False),
        sa.Column("occasion_date", sa.Date, nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("is_just_because", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("computed_send_date", sa.Date),
        sa.Column("card_variation", sa.String(50)),
        sa.Column("last_sent_year", sa.Integer),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "is_just_because = false OR computed_send_date IS NOT NULL",
            name="ck_occasion_just_because_date",
        ),
    )
    op.create_index("ix_occasions_recipient", "occasions", ["recipient_id"])

    # 6. Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("recipient_id", sa.Integer, sa.ForeignKey("recipients.id", ondelete="SET NULL")),
        sa.Column("occasion_id", sa.Integer, sa.ForeignKey("occasions.id", ondelete="SET NULL")),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id")),
        sa.Column("card_type", sa.String(20), nullable=False, server_default="subscription"),
        sa.Column("fulfillment_year", sa.Integer, nullable=False),
        sa.Column("occasion_date", sa.Date, nullable=False),
        sa.Column("print_date", sa.DateTime),
        sa.Column("mail_date", sa.DateTime),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("recipient_first_name", sa.String(100), nullable=False),
        sa.Column("recipient_last_name", sa.String(100), nullable=False),
        sa.Column("recipient_street", sa.String(255), nullable=False),
        sa.Column("recipient_apartment", sa.String(100)),
        sa.Column("recipient_city", sa.String(100), nullable=False),
        sa.Column("recipient_state", sa.String(50), nullable=False),
        sa.Column("recipient_zip", sa.String(20), nullable=False),
        sa.Column("return_name", sa.String(200), nullable=False),
        sa.Column("return_street", sa.String(255), nullable=False),
        sa.Column("return_apartment", sa.String(100)),
        sa.Column("return_city", sa.String(100), nullable=False),
        sa.Column("return_state", sa.String(50), nullable=False),
        sa.Column("return_zip", sa.String(20), nullable=False),
        sa.Column("occasion_type", sa.String(50), nullable=False),
        sa.Column("occasion_notes", sa.Text),
        sa.Column("card_variation", sa.String(50)),
        *_timestamps(),
        sa.UniqueConstraint("occasion_id", "fulfillment_year", name="uq_order_occasion_year"),
        sa.CheckConstraint("status IN ('pending', 'printed', 'mailed', 'cancelled')", name="ck_order_status"),
        sa.CheckConstraint("card_type IN ('subscription', 'bulk', 'individual')", name="ck_order_card_type"),
    )
    op.create_index("ix_orders_user_created", "orders", ["user_id", "created_at"])
    op.create_index("ix_orders_status", "orders", ["status"])


def downgrade() -> None:
    tables = [
        "orders",
        "occasions",
        "recipients",
        "user_addresses",
        "users",
        "teams",
    ]
    for table in tables:
        op.drop_table(table)
