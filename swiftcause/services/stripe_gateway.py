"""
Stripe calls used by the payment, Connect and webhook endpoints.

The module-level ``stripe`` client is configured once by ``init_stripe`` in the
app factory; helpers here only shape requests and persist the Stripe ids we
need to reuse (customer per identity, product per campaign).
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, Optional, Tuple

import stripe

from swiftcause.extensions import db
from swiftcause.models import Campaign, Organization, User
from swiftcause.models.mixins import utcnow
from swiftcause.security import Identity

log = logging.getLogger(__name__)

INTERVAL_MAP: Dict[str, Tuple[str, int]] = {
    "monthly": ("month", 1),
    "quarterly": ("month", 3),
    "yearly": ("year", 1),
}


def interval_from_plan(interval: Optional[str], count: Optional[int]) -> Optional[str]:
    """Map a Stripe (interval, interval_count) pair back to our interval name."""
    for name, pair in INTERVAL_MAP.items():
        if pair == (interval, int(count or 1)):
            return name
    return None


def stripe_get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a StripeObject, a plain dict or a simple attribute holder."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def metadata_of(obj: Any) -> Dict[str, str]:
    md = stripe_get(obj, "metadata") or {}
    return {str(k): str(v) for k, v in dict(md).items() if v is not None}


def idempotency_key(*parts: Any) -> str:
    raw = "|".join(str(p) for p in parts)
    return "sc_" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:40]


# ----------------------------
# Customers
# ----------------------------
def get_or_create_customer(identity: Identity) -> str:
    """Reuse users.stripe_customer_id for ``identity`` or create (and store) one."""
    user = db.session.get(User, identity.uid)
    if user is not None and user.stripe_customer_id:
        return user.stripe_customer_id

    customer = stripe.Customer.create(
        email=identity.email or None,
        name=identity.name or "Anonymous",
        metadata={"uid": identity.uid},
        idempotency_key=idempotency_key("customer", identity.uid),
    )
    customer_id = str(stripe_get(customer, "id"))

    if user is None:
        user = User(
            id=identity.uid,
            email=identity.email,
            display_name=identity.name,
            role=identity.role,
            organization_id=identity.organization_id,
        )
        db.session.add(user)
    user.stripe_customer_id = customer_id
    db.session.commit()
    log.info("stripe: created customer %s for %s", customer_id, identity.uid)
    return customer_id


def attach_payment_method(payment_method_id: str, customer_id: str) -> None:
    """Attach a payment method to a customer; an existing attachment is fine."""
    try:
        stripe.PaymentMethod.attach(payment_method_id, customer=customer_id)
    except stripe.InvalidRequestError as e:
        if getattr(e, "code", None) != "resource_already_exists":
            raise


def set_default_payment_method(customer_id: str, payment_method_id: str) -> None:
    stripe.Customer.modify(customer_id, invoice_settings={"default_payment_method": payment_method_id})


# ----------------------------
# Recurring prices
# ----------------------------
def get_or_create_recurring_price(campaign: Campaign, amount: int, currency: str, interval: str) -> str:
    stripe_interval, interval_count = INTERVAL_MAP[interval]

    product_id = campaign.billing_product_id
    if not product_id:
        product = stripe.Product.create(
            name=f"Recurring - {campaign.title or f'Campaign {campaign.id}'}",
            metadata={"campaignId": campaign.id},
        )
        product_id = str(stripe_get(product, "id"))
        campaign.billing_product_id = product_id
        db.session.commit()

    prices = stripe.Price.list(product=product_id, active=True, type="recurring", currency=currency, limit=100)
    for price in stripe_get(prices, "data") or []:
        recurring = stripe_get(price, "recurring") or {}
        if (
            stripe_get(price, "unit_amount") == amount
            and stripe_get(price, "currency") == currency
            and stripe_get(recurring, "interval") == stripe_interval
            and stripe_get(recurring, "interval_count") == interval_count
        ):
            return str(stripe_get(price, "id"))

    price = stripe.Price.create(
        product=product_id,
        currency=currency,
        unit_amount=amount,
        recurring={"interval": stripe_interval, "interval_count": interval_count},
        metadata={"campaignId": campaign.id, "interval": interval},
        nickname=f"{interval}-{amount}-{currency}",
    )
    return str(stripe_get(price, "id"))


# ----------------------------
# Connect
# ----------------------------
def apply_account_status(org: Organization, account: Any) -> None:
    """Copy onboarding flags from a Stripe Account onto the organization."""
    org.stripe_account_id = stripe_get(account, "id") or org.stripe_account_id
    org.stripe_charges_enabled = bool(stripe_get(account, "charges_enabled"))
    org.stripe_payouts_enabled = bool(stripe_get(account, "payouts_enabled"))
    org.stripe_details_submitted = bool(stripe_get(account, "details_submitted"))
    org.stripe_updated_at = utcnow()


# ----------------------------
# Errors
# ----------------------------
def user_facing_message(err: stripe.StripeError, fallback: str) -> str:
    return getattr(err, "user_message", None) or fallback
