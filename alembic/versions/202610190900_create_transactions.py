"""create transactions table

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_fixed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "is_installment", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("origin_id", sa.Integer()),
        sa.Column("parent_id", sa.Integer()),
        sa.Column("installment_index", sa.Integer()),
        sa.Column("installment_total", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("value > 0", name="ck_transactions_value_positive"),
        sa.CheckConstraint(
            "NOT (is_fixed AND is_installment)",
            name="ck_transactions_fixed_xor_installment",
        ),
        sa.CheckConstraint(
            "origin_id IS NULL OR is_fixed", name="ck_transactions_origin_fixed"
        ),
        sa.CheckConstraint(
            "parent_id IS NULL OR is_installment",
            name="ck_transactions_parent_installment",
        ),
        sa.CheckConstraint(
            "NOT (is_hidden AND (is_fixed OR is_installment))",
            name="ck_transactions_hidden_plain",
        ),
        sa.CheckConstraint(
            "installment_index IS NULL OR "
            "(installment_index >= 1 AND installment_index <= installment_total)",
            name="ck_transactions_installment_index_range",
        ),
    )
    op.create_index(
        "ix_transactions_user_date", "transactions", ["user_id", "date"], unique=False
    )
    op.create_index("ix_transactions_origin", "transactions", ["origin_id"])
    op.create_index("ix_transactions_parent", "transactions", ["parent_id"])


def downgrade():
    op.drop_index("ix_transactions_parent", table_name="transactions")
    op.drop_index("ix_transactions_origin", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
