"""Create lead import, balance and notification tables.

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c4e7f20b31"
down_revision = None
branch_labels = None
depends_on = None

_PLATFORMS = ("facebook", "google", "linkedin", "twitter", "custom")
_LEAD_STATUSES = ("pending", "delivered", "failed", "refunded")
_TRANSACTION_TYPES = ("deduction", "payment_recharge", "auto_recharge")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in (
        ("leadplatform", _PLATFORMS),
        ("leadstatus", _LEAD_STATUSES),
        ("transactiontype", _TRANSACTION_TYPES),
    ):
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    platform_enum = postgresql.ENUM(*_PLATFORMS, name="leadplatform", create_type=False)
    status_enum = postgresql.ENUM(*_LEAD_STATUSES, name="leadstatus", create_type=False)
    transaction_enum = postgresql.ENUM(
        *_TRANSACTION_TYPES, name="transactiontype", create_type=False
    )

    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(160)),
        sa.Column("stripe_customer_id", sa.String(120)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "saved_payment_methods",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id"),
            nullable=False,
        ),
        sa.Column("processor_payment_method_id", sa.String(120), nullable=False),
        sa.Column("brand", sa.String(40)),
        sa.Column("last4", sa.String(4)),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_saved_payment_methods_account_id", "saved_payment_methods", ["account_id"]
    )

    op.create_table(
        "lead_import_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id"),
            nullable=False,
        ),
        sa.Column("platform", platform_enum, nullable=False),
        sa.Column("campaign_id", sa.String(160), nullable=False),
        sa.Column("campaign_name", sa.String(255)),
        sa.Column("webhook_url", sa.String(500)),
        sa.Column("api_credentials", sa.JSON()),
        sa.Column("lead_mapping", sa.JSON()),
        sa.Column("cost_per_lead_cents", sa.Integer(), nullable=False),
        sa.Column("minimum_balance_cents", sa.Integer(), server_default="0"),
        sa.Column("auto_recharge", sa.Boolean(), server_default=sa.false()),
        sa.Column("recharge_amount_cents", sa.Integer()),
        sa.Column("quality_score_min", sa.Integer()),
        sa.Column("geo_restrictions", sa.JSON()),
        sa.Column("demographic_filters", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_lead_import_configs_account_id", "lead_import_configs", ["account_id"]
    )
    op.create_index(
        "ix_lead_import_configs_campaign_id", "lead_import_configs", ["campaign_id"]
    )

    op.create_table(
        "webhook_tokens",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("label", sa.String(120)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("last_used_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_webhook_tokens_account_id", "webhook_tokens", ["account_id"])

    op.create_table(
        "imported_leads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id"),
            nullable=False,
        ),
        sa.Column(
            "config_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lead_import_configs.id"),
        ),
        sa.Column("campaign_id", sa.String(160), nullable=False),
        sa.Column("source_platform", platform_enum, nullable=False),
        sa.Column("source_lead_id", sa.String(160), nullable=False),
        sa.Column("lead_data", sa.JSON()),
        sa.Column("quality_score", sa.Integer(), server_default="0"),
        sa.Column("cost_cents", sa.Integer(), server_default="0"),
        sa.Column("status", status_enum, server_default="pending"),
        sa.Column("failure_reason", sa.String(80)),
        sa.Column("is_test", sa.Boolean(), server_default=sa.false()),
        sa.Column("imported_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint(
            "account_id",
            "source_platform",
            "source_lead_id",
            name="uq_imported_leads_account_platform_source",
        ),
    )
    op.create_index("ix_imported_leads_account_id", "imported_leads", ["account_id"])
    op.create_index(
        "ix_imported_leads_status_imported_at", "imported_leads", ["status", "imported_at"]
    )

    op.create_table(
        "user_balances",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("balance_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reserved_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("auto_recharge_enabled", sa.Boolean(), server_default=sa.false()),
        sa.Column("recharge_threshold_cents", sa.Integer(), server_default="0"),
        sa.Column("recharge_amount_cents", sa.Integer(), server_default="0"),
        sa.Column("last_recharge_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint("balance_cents >= 0", name="ck_user_balances_non_negative"),
    )

    op.create_table(
        "balance_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id"),
            nullable=False,
        ),
        sa.Column("type", transaction_enum, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("reference_id", sa.String(160)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint(
            "type", "reference_id", name="uq_balance_transactions_type_reference"
        ),
    )
    op.create_index(
        "ix_balance_transactions_account_id", "balance_transactions", ["account_id"]
    )
    op.create_index(
        "ix_balance_transactions_reference_id", "balance_transactions", ["reference_id"]
    )

    op.create_table(
        "lead_notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("accounts.id"),
            nullable=False,
        ),
        sa.Column("type", sa.String(60), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text()),
        sa.Column("data", sa.JSON()),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "ix_lead_notifications_account_id", "lead_notifications", ["account_id"]
    )

    op.create_table(
        "webhook_request_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("path", sa.String(500), nullable=False),
        sa.Column("platform", sa.String(40)),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), server_default="0"),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("webhook_request_logs")
    op.drop_index("ix_lead_notifications_account_id", table_name="lead_notifications")
    op.drop_table("lead_notifications")
    op.drop_index("ix_balance_transactions_reference_id", table_name="balance_transactions")
    op.drop_index("ix_balance_transactions_account_id", table_name="balance_transactions")
    op.drop_table("balance_transactions")
    op.drop_table("user_balances")
    op.drop_index("ix_imported_leads_status_imported_at", table_name="imported_leads")
    op.drop_index("ix_imported_leads_account_id", table_name="imported_leads")
    op.drop_table("imported_leads")
    op.drop_index("ix_webhook_tokens_account_id", table_name="webhook_tokens")
    op.drop_table("webhook_tokens")
    op.drop_index("ix_lead_import_configs_campaign_id", table_name="lead_import_configs")
    op.drop_index("ix_lead_import_configs_account_id", table_name="lead_import_configs")
    op.drop_table("lead_import_configs")
    op.drop_index("ix_saved_payment_methods_account_id", table_name="saved_payment_methods")
    op.drop_table("saved_payment_methods")
    op.drop_table("accounts")

    bind = op.get_bind()
    for name in ("transactiontype", "leadstatus", "leadplatform"):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
