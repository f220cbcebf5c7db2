"""Initial schema for users, rewards and points transactions."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20250301_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:  # noqa: D401
    """Create the loyalty tables and indexes."""

    user_role = sa.Enum("admin", "dealer", "sub_dealer", "contractor", "builder", name="user_role")
    transaction_type = sa.Enum("earned", "redeemed", name="transaction_type")
    transaction_status = sa.Enum(
        "pending",
        "dealer_approved",
        "approved",
        "rejected",
        "completed",
        "cancelled",
        name="transaction_status",
    )

    user_role.create(op.get_bind(), checkfirst=True)
    transaction_type.create(op.get_bind(), checkfirst=True)
    transaction_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("role", user_role, nullable=False),
        sa.Column("district", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_by", "users", ["created_by"])

    op.create_table(
        "rewards",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1024), nullable=False, server_default=""),
        sa.Column("points_required", sa.Integer(), nullable=False),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("dealer_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "reward_id", sa.String(length=36), sa.ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("status", transaction_status, nullable=False, server_default="pending"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_dealer_id", "transactions", ["dealer_id"])
    op.create_index("ix_transactions_created_at", "transactions", ["created_at"])


def downgrade() -> None:  # noqa: D401
    """Drop the loyalty tables."""

    op.drop_index("ix_transactions_created_at", table_name="transactions")
    op.drop_index("ix_transactions_dealer_id", table_name="transactions")
    op.drop_index("ix_transactions_user_id", table_name="transactions")
    op.drop_table("transactions")

    op.drop_table("rewards")

    op.drop_index("ix_users_created_by", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")

    for enum_name in ["transaction_status", "transaction_type", "user_role"]:
        _drop_enum(enum_name)
