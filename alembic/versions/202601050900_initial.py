"""initial schema

Revision ID: 202601050900
Revises:
Create Date: 2026-01-05 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601050900"
down_revision = None
branch_labels = None
depends_on = None

RECURRENCE_VALUES = (
    "weekly",
    "bi-weekly",
    "semi-monthly",
    "monthly",
    "yearly",
    "custom-interval",
    "manual",
    "one-time",
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _template_columns():
    return [
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "recurrence",
            sa.Enum(*RECURRENCE_VALUES, name="recurrencetype"),
            nullable=False,
        ),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("day2", sa.Integer()),
        sa.Column("month", sa.String(length=3)),
        sa.Column("start_month", sa.String(length=3)),
        sa.Column("end_month", sa.String(length=3)),
        sa.Column(
            "auto_generate", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    ]


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_accounts_user_order", "accounts", ["user_id", "order"])

    op.create_table(
        "bill_templates",
        *_template_columns(),
        sa.Column("interval_days", sa.Integer()),
        sa.Column("manual_dates", sa.JSON(), nullable=False),
        sa.Column("amounts", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("day >= 1 AND day <= 31", name="ck_bill_template_day"),
        sa.CheckConstraint(
            "interval_days IS NULL OR interval_days > 0",
            name="ck_bill_template_interval_positive",
        ),
    )
    op.create_index("ix_bill_templates_user", "bill_templates", ["user_id"])

    op.create_table(
        "payday_templates",
        *_template_columns(),
        sa.Column("balances", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("day >= 1 AND day <= 31", name="ck_payday_template_day"),
    )
    op.create_index("ix_payday_templates_user", "payday_templates", ["user_id"])

    op.create_table(
        "entries",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("template_id", sa.String(length=36)),
        sa.Column("type", sa.Enum("bill", "payday", name="entrytype"), nullable=False),
        sa.Column("date", sa.Integer(), nullable=False),
        sa.Column("month", sa.String(length=16), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("amounts", sa.JSON(), nullable=False),
        sa.Column("balances", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id",
            "template_id",
            "month",
            "date",
            name="uq_entry_template_occurrence",
        ),
    )
    op.create_index("ix_entries_user_template", "entries", ["user_id", "template_id"])
    op.create_index("ix_entries_user_month", "entries", ["user_id", "month"])


def downgrade():
    op.drop_index("ix_entries_user_month", table_name="entries")
    op.drop_index("ix_entries_user_template", table_name="entries")
    op.drop_table("entries")
    op.drop_index("ix_payday_templates_user", table_name="payday_templates")
    op.drop_table("payday_templates")
    op.drop_index("ix_bill_templates_user", table_name="bill_templates")
    op.drop_table("bill_templates")
    op.drop_index("ix_accounts_user_order", table_name="accounts")
    op.drop_table("accounts")
