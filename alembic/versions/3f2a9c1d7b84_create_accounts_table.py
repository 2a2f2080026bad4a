"""create accounts table

Revision ID: 3f2a9c1d7b84
Revises:
Create Date: 2026-10-19 09:12:40.518203

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b84"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pending_email", sa.String(length=255), nullable=True),
        sa.Column("verification_token", sa.String(length=128), nullable=True),
        sa.Column("verification_token_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recovery_token", sa.String(length=128), nullable=True),
        sa.Column("recovery_token_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recovery_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_login_attempt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_tier", sa.String(length=32), nullable=False, server_default="free"),
        sa.Column("subscription_status", sa.String(length=32), nullable=False, server_default="none"),
        sa.Column("subscription_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_lifetime", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_accounts_id"), "accounts", ["id"], unique=False)
    op.create_index(op.f("ix_accounts_email"), "accounts", ["email"], unique=True)
    op.create_index(op.f("ix_accounts_verification_token"), "accounts", ["verification_token"], unique=False)
    op.create_index(op.f("ix_accounts_recovery_token"), "accounts", ["recovery_token"], unique=False)
    op.create_index(op.f("ix_accounts_stripe_customer_id"), "accounts", ["stripe_customer_id"], unique=False)
    op.create_index(op.f("ix_accounts_deleted_at"), "accounts", ["deleted_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_accounts_deleted_at"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_stripe_customer_id"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_recovery_token"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_verification_token"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_email"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_id"), table_name="accounts")
    op.drop_table("accounts")
