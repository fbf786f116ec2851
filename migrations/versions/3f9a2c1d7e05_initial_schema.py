"""initial schema

Revision ID: 3f9a2c1d7e05
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f9a2c1d7e05"
down_revision = None
branch_labels = None
depends_on = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _jsonb():
    # Portable: JSON on SQLite, JSONB on Postgres
    return sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    # --- organizations ---
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("stripe_account_id", sa.String(length=120), nullable=True),
        sa.Column("stripe_charges_enabled", sa.Boolean(), nullable=False),
        sa.Column("stripe_payouts_enabled", sa.Boolean(), nullable=False),
        sa.Column("stripe_details_submitted", sa.Boolean(), nullable=False),
        sa.Column("stripe_updated_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_organizations_stripe_account_id", "organizations", ["stripe_account_id"], unique=True)
    op.create_index("ix_organizations_created_at", "organizations", ["created_at"])

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column(
            "organization_id",
            sa.String(length=64),
            sa.ForeignKey("organizations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("stripe_customer_id", sa.String(length=120), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_organization_id", "users", ["organization_id"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    # --- campaigns ---
    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=64),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("goal", sa.Integer(), nullable=False),
        sa.Column("collected_amount", sa.Integer(), nullable=False),
        sa.Column("donation_count", sa.Integer(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("auto_completed_goal", sa.Integer(), nullable=True),
        sa.Column("auto_completed_at", sa.DateTime(), nullable=True),
        sa.Column("auto_paused_end_date", sa.Date(), nullable=True),
        sa.Column("auto_paused_end_date_at", sa.DateTime(), nullable=True),
        sa.Column("billing_product_id", sa.String(length=120), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("goal >= 0", name="ck_campaigns_goal_nonneg"),
        sa.CheckConstraint("collected_amount >= 0", name="ck_campaigns_collected_nonneg"),
    )
    op.create_index("ix_campaigns_organization_id", "campaigns", ["organization_id"])
    op.create_index("ix_campaigns_org_status", "campaigns", ["organization_id", "status"])
    op.create_index("ix_campaigns_created_at", "campaigns", ["created_at"])

    # --- kiosks ---
    op.create_table(
        "kiosks",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("location", sa.String(length=160), nullable=True),
        sa.Column(
            "organization_id",
            sa.String(length=64),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("access_code_hash", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("assigned_campaigns", _jsonb(), nullable=False),
        sa.Column("settings", _jsonb(), nullable=False),
        sa.Column("last_active", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_kiosks_organization_id", "kiosks", ["organization_id"])
    op.create_index("ix_kiosks_created_at", "kiosks", ["created_at"])

    # --- donations ---
    op.create_table(
        "donations",
        sa.Column("id", sa.String(length=120), primary_key=True),
        sa.Column("transaction_id", sa.String(length=120), nullable=False, unique=True),
        sa.Column(
            "campaign_id",
            sa.String(length=64),
            sa.ForeignKey("campaigns.id"),
            nullable=False,
        ),
        sa.Column("organization_id", sa.String(length=64), nullable=True),
        sa.Column("kiosk_id", sa.String(length=64), nullable=True),
        sa.Column("donor_id", sa.String(length=128), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("donor_name", sa.String(length=160), nullable=True),
        sa.Column("donor_email", sa.String(length=255), nullable=True),
        sa.Column("donor_phone", sa.String(length=40), nullable=True),
        sa.Column("donor_message", sa.String(length=500), nullable=True),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False),
        sa.Column("is_gift_aid", sa.Boolean(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("recurring_interval", sa.String(length=20), nullable=True),
        sa.Column("platform", sa.String(length=20), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("subscription_id", sa.String(length=120), nullable=True),
        sa.Column("invoice_id", sa.String(length=120), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
    )
    op.create_index("ix_donations_campaign_id", "donations", ["campaign_id"])
    op.create_index("ix_donations_kiosk_id", "donations", ["kiosk_id"])
    op.create_index("ix_donations_donor_id", "donations", ["donor_id"])
    op.create_index("ix_donations_subscription_id", "donations", ["subscription_id"])
    op.create_index("ix_donations_campaign_ts", "donations", ["campaign_id", "timestamp"])
    op.create_index("ix_donations_org_ts", "donations", ["organization_id", "timestamp"])
    op.create_index("ix_donations_created_at", "donations", ["created_at"])

    # --- gift_aid_declarations ---
    op.create_table(
        "gift_aid_declarations",
        sa.Column("id", sa.String(length=120), primary_key=True),
        sa.Column(
            "donation_id",
            sa.String(length=120),
            sa.ForeignKey("donations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("transaction_id", sa.String(length=120), nullable=False),
        sa.Column("campaign_id", sa.String(length=64), nullable=True),
        sa.Column("campaign_title", sa.String(length=200), nullable=True),
        sa.Column("organization_id", sa.String(length=64), nullable=True),
        sa.Column("donor_first_name", sa.String(length=80), nullable=True),
        sa.Column("donor_surname", sa.String(length=80), nullable=True),
        sa.Column("donor_title", sa.String(length=20), nullable=True),
        sa.Column("donor_email", sa.String(length=255), nullable=True),
        sa.Column("donor_house_number", sa.String(length=40), nullable=True),
        sa.Column("donor_address_line1", sa.String(length=160), nullable=True),
        sa.Column("donor_address_line2", sa.String(length=160), nullable=True),
        sa.Column("donor_town", sa.String(length=80), nullable=True),
        sa.Column("donor_postcode", sa.String(length=16), nullable=True),
        sa.Column("gift_aid_consent", sa.Boolean(), nullable=False),
        sa.Column("uk_taxpayer_confirmation", sa.Boolean(), nullable=False),
        sa.Column("declaration_text", sa.Text(), nullable=True),
        sa.Column("declaration_date", sa.DateTime(), nullable=False),
        sa.Column("donation_amount", sa.Integer(), nullable=False),
        sa.Column("gift_aid_amount", sa.Integer(), nullable=False),
        sa.Column("donation_date", sa.DateTime(), nullable=False),
        sa.Column("tax_year", sa.String(length=7), nullable=False),
        sa.Column("classification", sa.String(length=10), nullable=False),
        sa.Column("pending_reasons", _jsonb(), nullable=False),
        sa.Column("gift_aid_status", sa.String(length=20), nullable=False),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_gift_aid_declarations_transaction_id", "gift_aid_declarations", ["transaction_id"])
    op.create_index("ix_gift_aid_declarations_campaign_id", "gift_aid_declarations", ["campaign_id"])
    op.create_index("ix_gift_aid_declarations_organization_id", "gift_aid_declarations", ["organization_id"])
    op.create_index("ix_gift_aid_declarations_tax_year", "gift_aid_declarations", ["tax_year"])
    op.create_index("ix_gift_aid_declarations_created_at", "gift_aid_declarations", ["created_at"])

    # --- subscriptions ---
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(length=120), primary_key=True),
        sa.Column("customer_id", sa.String(length=120), nullable=True),
        sa.Column("donor_id", sa.String(length=128), nullable=True),
        sa.Column("campaign_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=False),
        sa.Column("interval", sa.String(length=20), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("price_id", sa.String(length=120), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False),
        sa.Column("payment_method_id", sa.String(length=120), nullable=True),
        sa.Column("card_brand", sa.String(length=40), nullable=True),
        sa.Column("card_last4", sa.String(length=4), nullable=True),
        sa.Column("last_invoice_id", sa.String(length=120), nullable=True),
        sa.Column("last_payment_error", sa.String(length=500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_subscriptions_customer_id", "subscriptions", ["customer_id"])
    op.create_index("ix_subscriptions_donor_id", "subscriptions", ["donor_id"])
    op.create_index("ix_subscriptions_campaign_id", "subscriptions", ["campaign_id"])
    op.create_index("ix_subscriptions_created_at", "subscriptions", ["created_at"])

    # --- mail (outbound email queue) ---
    op.create_table(
        "mail",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("to", _jsonb(), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("html", sa.Text(), nullable=True),
        sa.Column("meta", _jsonb(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.String(length=500), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_mail_status_created", "mail", ["status", "created_at"])
    op.create_index("ix_mail_created_at", "mail", ["created_at"])

    # --- stripe_events ---
    op.create_table(
        "stripe_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(length=120), nullable=False),
        sa.Column("type", sa.String(length=120), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("account", sa.String(length=120), nullable=True),
        sa.Column("object_id", sa.String(length=120), nullable=True),
        sa.Column("payload", _jsonb(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_stripe_events_event_id", "stripe_events", ["event_id"], unique=True)
    op.create_index("ix_stripe_events_type", "stripe_events", ["type"])
    op.create_index("ix_stripe_events_object_id", "stripe_events", ["object_id"])
    op.create_index("ix_stripe_events_type_created", "stripe_events", ["type", "created_at"])
    op.create_index("ix_stripe_events_created_at", "stripe_events", ["created_at"])


def downgrade():
    for table in (
        "stripe_events",
        "mail",
        "subscriptions",
        "gift_aid_declarations",
        "donations",
        "kiosks",
        "campaigns",
        "users",
        "organizations",
    ):
        op.drop_table(table)
