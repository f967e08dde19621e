"""
app/services/webhook_handlers/stripe.py

Stripe event type -> handler table.
"""

from __future__ import annotations

import logging

from app.services.webhook_handlers.base import (
    Detach,
    HardDelete,
    LogOnly,
    Resync,
    ResyncParent,
    ResyncRelated,
    SoftDelete,
    WebhookHandler,
    chain,
    register,
)


def _build_table() -> dict[str, WebhookHandler]:
    table: dict[str, WebhookHandler] = {}

    # Customers
    register(table, ("customer.created", "customer.updated"), Resync("customers"))
    table["customer.deleted"] = SoftDelete("customers")
    register(
        table,
        ("customer.discount.created", "customer.discount.updated", "customer.discount.deleted"),
        Resync("customers", id_fields=("customer",)),
    )
    register(
        table,
        ("customer.tax_id.created", "customer.tax_id.updated"),
        ResyncParent("tax_ids", parent_field="customer"),
    )
    table["customer.tax_id.deleted"] = HardDelete("tax_ids")

    # Subscriptions
    register(
        table,
        (
            "customer.subscription.created",
            "customer.subscription.updated",
            "customer.subscription.paused",
            "customer.subscription.resumed",
            "customer.subscription.pending_update_applied",
            "customer.subscription.pending_update_expired",
            "customer.subscription.trial_will_end",
        ),
        chain(Resync("subscriptions"), ResyncParent("subscription_items", parent_field="id")),
    )
    # A cancelled subscription still exists remotely with status=canceled.
    table["customer.subscription.deleted"] = Resync("subscriptions")
    register(
        table,
        (
            "subscription_schedule.aborted",
            "subscription_schedule.canceled",
            "subscription_schedule.completed",
            "subscription_schedule.created",
            "subscription_schedule.expiring",
            "subscription_schedule.released",
            "subscription_schedule.updated",
        ),
        Resync("subscription_schedules"),
    )

    # Catalog
    register(table, ("product.created", "product.updated"), Resync("products"))
    table["product.deleted"] = SoftDelete("products")
    register(table, ("price.created", "price.updated"), Resync("prices"))
    table["price.deleted"] = SoftDelete("prices")
    register(table, ("coupon.created", "coupon.updated"), Resync("coupons"))
    table["coupon.deleted"] = SoftDelete("coupons")
    register(table, ("promotion_code.created", "promotion_code.updated"), Resync("promotion_codes"))
    register(table, ("tax_rate.created", "tax_rate.updated"), Resync("tax_rates"))

    # Billing
    register(
        table,
        (
            "invoice.created",
            "invoice.finalized",
            "invoice.finalization_failed",
            "invoice.marked_uncollectible",
            "invoice.overdue",
            "invoice.paid",
            "invoice.payment_action_required",
            "invoice.payment_failed",
            "invoice.payment_succeeded",
            "invoice.sent",
            "invoice.updated",
            "invoice.voided",
        ),
        Resync("invoices"),
    )
    table["invoice.deleted"] = HardDelete("invoices")
    # Upcoming invoices have no id and cannot be fetched.
    table["invoice.upcoming"] = LogOnly("Upcoming invoice notice")
    register(table, ("invoiceitem.created", "invoiceitem.updated"), Resync("invoice_items"))
    table["invoiceitem.deleted"] = HardDelete("invoice_items")
    register(
        table,
        ("credit_note.created", "credit_note.updated", "credit_note.voided"),
        Resync("credit_notes"),
    )

    # Payments
    register(
        table,
        (
            "charge.captured",
            "charge.expired",
            "charge.failed",
            "charge.pending",
            "charge.refunded",
            "charge.succeeded",
            "charge.updated",
        ),
        Resync("charges"),
    )
    register(
        table,
        ("charge.refund.updated", "refund.created", "refund.updated", "refund.failed"),
        chain(Resync("refunds"), ResyncRelated((("charges", "charge"),))),
    )
    register(
        table,
        (
            "charge.dispute.created",
            "charge.dispute.updated",
            "charge.dispute.closed",
            "charge.dispute.funds_reinstated",
            "charge.dispute.funds_withdrawn",
        ),
        chain(Resync("disputes"), ResyncRelated((("charges", "charge"),))),
    )
    register(
        table,
        (
            "payment_intent.amount_capturable_updated",
            "payment_intent.canceled",
            "payment_intent.created",
            "payment_intent.partially_funded",
            "payment_intent.payment_failed",
            "payment_intent.processing",
            "payment_intent.requires_action",
            "payment_intent.succeeded",
        ),
        Resync("payment_intents"),
    )
    register(
        table,
        (
            "setup_intent.canceled",
            "setup_intent.created",
            "setup_intent.requires_action",
            "setup_intent.setup_failed",
            "setup_intent.succeeded",
        ),
        Resync("setup_intents"),
    )
    register(
        table,
        ("payment_method.attached", "payment_method.updated", "payment_method.automatically_updated"),
        Resync("payment_methods"),
    )
    table["payment_method.detached"] = chain(Detach("payment_methods"), Resync("payment_methods"))

    # Checkout
    register(
        table,
        (
            "checkout.session.completed",
            "checkout.session.async_payment_succeeded",
            "checkout.session.async_payment_failed",
            "checkout.session.expired",
        ),
        chain(
            Resync("checkout_sessions"),
            ResyncRelated(
                (
                    ("customers", "customer"),
                    ("subscriptions", "subscription"),
                    ("payment_intents", "payment_intent"),
                )
            ),
        ),
    )

    # Balance and payouts are not mirrored.
    table["balance.available"] = LogOnly("Balance available")
    register(
        table,
        ("payout.created", "payout.updated", "payout.paid", "payout.failed", "payout.canceled"),
        LogOnly("Payout event", level=logging.INFO),
    )

    return table


STRIPE_WEBHOOK_HANDLERS: dict[str, WebhookHandler] = _build_table()
