"""ticketing core: events, categories, orders, payments, tickets, outbox

Revision ID: 0001_ticketing_core
Revises:
Create Date: 2026-10-17 09:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001_ticketing_core"
down_revision = None
branch_labels = None
depends_on = None


def _pk():
    return sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True)


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def upgrade():
    op.create_table(
        "events",
        _pk(),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("event_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("base_ticket_price", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("ticket_currency", sa.String(length=3), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.CheckConstraint("base_ticket_price IS NULL OR base_ticket_price >= 0", name="check_base_ticket_price_non_negative"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_slug", "events", ["slug"], unique=True)

    op.create_table(
        "ticket_categories",
        _pk(),
        sa.Column("event_id", sa.BigInteger(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("quantity_total", sa.BigInteger(), nullable=True),
        sa.Column("quantity_sold", sa.BigInteger(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("event_id", "name", name="uq_ticket_categories_event_name"),
        sa.CheckConstraint("price >= 0", name="check_ticket_category_price_non_negative"),
        sa.CheckConstraint("quantity_sold >= 0", name="check_quantity_sold_non_negative"),
        sa.CheckConstraint("quantity_total IS NULL OR quantity_sold <= quantity_total", name="check_quantity_sold_within_total"),
    )
    op.create_index("ix_ticket_categories_id", "ticket_categories", ["id"])
    op.create_index("ix_ticket_categories_event_id", "ticket_categories", ["event_id"])

    op.create_table(
        "ticket_orders",
        _pk(),
        sa.Column("order_number", sa.String(), nullable=False),
        sa.Column("event_id", sa.BigInteger(), sa.ForeignKey("events.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("customer_email", sa.String(), nullable=False),
        sa.Column("customer_phone", sa.String(), nullable=True),
        sa.Column("total_amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("payment_status", sa.String(), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("payment_transaction_id", sa.String(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tickets_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_order_status"),
        sa.CheckConstraint("payment_status IN ('unpaid', 'paid')", name="check_order_payment_status"),
        sa.CheckConstraint("status != 'confirmed' OR payment_status = 'paid'", name="check_confirmed_orders_paid"),
    )
    op.create_index("ix_ticket_orders_id", "ticket_orders", ["id"])
    op.create_index("ix_ticket_orders_order_number", "ticket_orders", ["order_number"], unique=True)
    op.create_index("ix_ticket_orders_event_id", "ticket_orders", ["event_id"])
    op.create_index("ix_ticket_orders_customer_email", "ticket_orders", ["customer_email"])
    op.create_index("ix_ticket_orders_status", "ticket_orders", ["status"])
    op.create_index("ix_ticket_orders_payment_status", "ticket_orders", ["payment_status"])
    op.create_index("ix_ticket_orders_payment_transaction_id", "ticket_orders", ["payment_transaction_id"], unique=True)

    op.create_table(
        "ticket_order_selections",
        _pk(),
        sa.Column("ticket_order_id", sa.BigInteger(), sa.ForeignKey("ticket_orders.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("ticket_selection", sa.JSON(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_ticket_order_selections_id", "ticket_order_selections", ["id"])

    op.create_table(
        "payments",
        _pk(),
        sa.Column("ticket_order_id", sa.BigInteger(), sa.ForeignKey("ticket_orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=False),
        sa.Column("transaction_id", sa.String(), nullable=False),
        sa.Column("provider_reference", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_ticket_order_id", "payments", ["ticket_order_id"])
    op.create_index("ix_payments_transaction_id", "payments", ["transaction_id"])

    op.create_table(
        "purchased_tickets",
        _pk(),
        sa.Column("ticket_uid", sa.String(length=36), nullable=False, unique=True),
        sa.Column("ticket_order_id", sa.BigInteger(), sa.ForeignKey("ticket_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_ticket_id", sa.BigInteger(), sa.ForeignKey("ticket_categories.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("ticket_number", sa.String(), nullable=False),
        sa.Column("qr_code_data", sa.Text(), nullable=False),
        sa.Column("qr_code_hash", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redeemed_by", sa.String(), nullable=True),
        sa.Column("redemption_location", sa.String(), nullable=True),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("ticket_type_name", sa.String(), nullable=False),
        sa.Column("price_paid", sa.Numeric(precision=10, scale=2), nullable=False),
        _created_at(),
        sa.CheckConstraint("status IN ('valid', 'redeemed', 'void')", name="check_ticket_status"),
        sa.CheckConstraint("status != 'redeemed' OR redeemed_at IS NOT NULL", name="check_redeemed_has_timestamp"),
    )
    op.create_index("ix_purchased_tickets_id", "purchased_tickets", ["id"])
    op.create_index("ix_purchased_tickets_ticket_order_id", "purchased_tickets", ["ticket_order_id"])
    op.create_index("ix_purchased_tickets_event_ticket_id", "purchased_tickets", ["event_ticket_id"])
    op.create_index("ix_purchased_tickets_ticket_number", "purchased_tickets", ["ticket_number"], unique=True)
    op.create_index("ix_purchased_tickets_qr_code_hash", "purchased_tickets", ["qr_code_hash"], unique=True)
    op.create_index("ix_purchased_tickets_status", "purchased_tickets", ["status"])

    op.create_table(
        "notification_outbox",
        _pk(),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("aggregate_id", sa.BigInteger(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("dedupe_key", sa.String(), nullable=False, unique=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("attempts", sa.BigInteger(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_notification_outbox_id", "notification_outbox", ["id"])
    op.create_index("ix_notification_outbox_status_created", "notification_outbox", ["status", "created_at"])


def downgrade():
    op.drop_table("notification_outbox")
    op.drop_table("purchased_tickets")
    op.drop_table("payments")
    op.drop_table("ticket_order_selections")
    op.drop_table("ticket_orders")
    op.drop_table("ticket_categories")
    op.drop_table("events")
