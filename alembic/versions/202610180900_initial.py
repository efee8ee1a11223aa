"""initial schema with system categories

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

from datetime import datetime

from alembic import op
import sqlalchemy as sa


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None

TRANSACTION_TYPE = sa.Enum("INCOME", "EXPENSE", name="transactiontype")

SYSTEM_CATEGORIES = [
    ("Food", "EXPENSE"),
    ("Transport", "EXPENSE"),
    ("Shopping", "EXPENSE"),
    ("Bills & Utilities", "EXPENSE"),
    ("Entertainment", "EXPENSE"),
    ("Healthcare", "EXPENSE"),
    ("Education", "EXPENSE"),
    ("Other Expenses", "EXPENSE"),
    ("Salary", "INCOME"),
    ("Freelance", "INCOME"),
    ("Investments", "INCOME"),
    ("Other Income", "INCOME"),
]


def upgrade() -> None:
    categories = op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("owner_id", "name", name="uq_category_owner_name"),
    )
    op.create_index("ix_categories_owner_type", "categories", ["owner_id", "type"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id"),
            nullable=False,
        ),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_owner_date", "transactions", ["owner_id", "date"]
    )
    op.create_index(
        "ix_transactions_owner_category_date",
        "transactions",
        ["owner_id", "category_id", "date"],
    )
    op.create_index(
        "ix_transactions_owner_type_date",
        "transactions",
        ["owner_id", "type", "date"],
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_budgets_amount_positive"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_budgets_month_range"),
        sa.CheckConstraint(
            "year BETWEEN 2000 AND 2100", name="ck_budgets_year_range"
        ),
        sa.UniqueConstraint(
            "owner_id",
            "category_id",
            "month",
            "year",
            name="uq_budget_owner_category_month",
        ),
    )
    op.create_index("ix_budgets_owner_month", "budgets", ["owner_id", "year", "month"])

    # System category names must stay unique even though owner_id is NULL.
    op.execute(
        "CREATE UNIQUE INDEX uq_category_system_name "
        "ON categories(lower(name)) WHERE owner_id IS NULL"
    )

    now = datetime.utcnow()
    op.bulk_insert(
        categories,
        [
            {
                "owner_id": None,
                "name": name,
                "type": category_type,
                "created_at": now,
                "updated_at": now,
            }
            for name, category_type in SYSTEM_CATEGORIES
        ],
    )


def downgrade() -> None:
    op.drop_index("uq_category_system_name", table_name="categories")
    op.drop_index("ix_budgets_owner_month", table_name="budgets")
    op.drop_table("budgets")
    op.drop_index("ix_transactions_owner_type_date", table_name="transactions")
    op.drop_index("ix_transactions_owner_category_date", table_name="transactions")
    op.drop_index("ix_transactions_owner_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_categories_owner_type", table_name="categories")
    op.drop_table("categories")
    TRANSACTION_TYPE.drop(op.get_bind(), checkfirst=True)
