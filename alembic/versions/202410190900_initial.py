"""initial schema: categories, transaction templates, monthly status overrides

Revision ID: 202410190900
Revises:
Create Date: 2024-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202410190900"
down_revision = None
branch_labels = None
depends_on = None

TRANSACTION_TYPE = sa.Enum("expense", "income", name="transactiontype")
TRANSACTION_STATUS = sa.Enum("pending", "paid", "cleared", name="transactionstatus")
RECURRENCE = sa.Enum(
    "once", "weekly", "biweekly", "monthly", "quarterly", "yearly", name="recurrence"
)
DATE_PLACEMENT = sa.Enum(
    "fixed", "first_of_month", "last_of_month", "custom_day", name="dateplacement"
)


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )

    op.create_table(
        "transaction_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("baseline_date", sa.Date(), nullable=False),
        sa.Column("original_date", sa.Date(), nullable=True),
        sa.Column("recurrence", RECURRENCE, nullable=False, server_default="once"),
        sa.Column(
            "date_placement", DATE_PLACEMENT, nullable=False, server_default="fixed"
        ),
        sa.Column("custom_day", sa.Integer(), nullable=True),
        sa.Column(
            "status", TRANSACTION_STATUS, nullable=False, server_default="pending"
        ),
        sa.Column("cleared", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("amount_cents > 0", name="ck_template_amount_positive"),
        sa.CheckConstraint(
            "custom_day IS NULL OR (custom_day >= 1 AND custom_day <= 31)",
            name="ck_template_custom_day_range",
        ),
    )
    op.create_index(
        "ix_templates_baseline_date", "transaction_templates", ["baseline_date"]
    )
    op.create_index("ix_templates_recurrence", "transaction_templates", ["recurrence"])

    op.create_table(
        "monthly_status_overrides",
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("transaction_templates.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("year", sa.Integer(), primary_key=True),
        sa.Column("month", sa.Integer(), primary_key=True),
        sa.Column(
            "status", TRANSACTION_STATUS, nullable=False, server_default="pending"
        ),
        sa.Column("cleared", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_override_month_range"),
    )
    op.create_index(
        "ix_override_year_month", "monthly_status_overrides", ["year", "month"]
    )


def downgrade():
    op.drop_index("ix_override_year_month", table_name="monthly_status_overrides")
    op.drop_table("monthly_status_overrides")
    op.drop_index("ix_templates_recurrence", table_name="transaction_templates")
    op.drop_index("ix_templates_baseline_date", table_name="transaction_templates")
    op.drop_table("transaction_templates")
    op.drop_table("categories")
    bind = op.get_bind()
    for enum in (DATE_PLACEMENT, RECURRENCE, TRANSACTION_STATUS, TRANSACTION_TYPE):
        enum.drop(bind, checkfirst=True)
