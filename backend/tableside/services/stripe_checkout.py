"""
Stripe Checkout Service
Online customer checkout and the webhook that turns a paid session into an order
"""

import logging
import secrets
from decimal import Decimal
from typing import Any, Dict, List, Optional

import stripe
from sqlalchemy.orm import Session

from tableside.core.config import settings
from tableside.core.errors import InputRejection, InvalidWebhook, PaymentProviderError
from tableside.db.session import commit_or_fail
from tableside.models.kitchen_order import KitchenOrder, OrderSource, OrderStatus
from tableside.services.draft_store import resolve_selection
from tableside.services.pricing import to_decimal

logger = logging.getLogger(__name__)


def field_of(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a Stripe object or a plain dict."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def new_confirmation_code() -> str:
    """Four-digit code the customer gives the driver on delivery."""
    return str(1000 + secrets.randbelow(9000))


def to_cents(amount: Decimal) -> int:
    return int((to_decimal(amount) * 100).to_integral_value())


class StripeCheckoutService:
    """
    Stripe Checkout integration for the online menu

    Features:
    - Checkout session creation from a server-priced cart
    - Webhook signature verification
    - Order creation for completed sessions (idempotent on session id)
    """

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        if self.api_key:
            stripe.api_key = self.api_key

    def _require_configured(self) -> None:
        if not self.api_key:
            raise PaymentProviderError("Stripe is not configured")

    # ==================== CHECKOUT ====================

    def build_line_items(self, db: Session, tenant_id: str, cart: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Price every cart entry from the menu; client-sent prices are ignored."""
        if not cart:
            raise InputRejection("Cart is empty")
        line_items = []
        for entry in cart:
            line = resolve_selection(
                db,
                tenant_id,
                entry["menu_item_id"],
                quantity=entry.get("quantity", 1),
                notes=entry.get("notes"),
                size_id=entry.get("size_id"),
                addon_ids=entry.get("addon_ids"),
                stuffed_crust_id=entry.get("stuffed_crust_id"),
                removed_ingredients=entry.get("removed_ingredients"),
                flavor_combination_id=entry.get("flavor_combination_id"),
                flavors=entry.get("flavors"),
            )
            line_items.append({
                "price_data": {
                    "currency": settings.currency,
                    "unit_amount": to_cents(line["unit_price"]),
                    "product_data": {
                        "name": line["name"],
                        "metadata": {"product_id": str(line["product_id"])},
                    },
                },
                "quantity": line["quantity"],
            })
        return line_items

    def create_checkout_session(
        self,
        db: Session,
        tenant_id: str,
        cart: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        is_delivery: bool = False,
        delivery_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a Checkout Session for the customer's cart."""
        self._require_configured()
        if is_delivery and not delivery_address:
            raise InputRejection("Delivery orders need a delivery address")

        line_items = self.build_line_items(db, tenant_id, cart)
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=line_items,
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={
                    "tenant_id": tenant_id,
                    "is_delivery": "true" if is_delivery else "false",
                    "delivery_address": delivery_address or "",
                },
            )
        except stripe.error.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {str(e)}")
            raise PaymentProviderError(f"Stripe error: {str(e)}") from e

        logger.info(f"Created checkout session {session.id} for tenant {tenant_id}")
        return {"session_id": session.id, "url": field_of(session, "url")}

    # ==================== WEBHOOKS ====================

    def verify_webhook(self, payload: bytes, signature: Optional[str]):
        """Verify the Stripe-Signature header and return the event."""
        if not self.webhook_secret:
            raise PaymentProviderError("Stripe webhook secret is not configured")
        if not signature:
            raise InvalidWebhook("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            logger.warning(f"Invalid webhook payload: {str(e)}")
            raise InvalidWebhook("Invalid payload") from e
        except stripe.error.SignatureVerificationError as e:
            logger.warning(f"Invalid webhook signature: {str(e)}")
            raise InvalidWebhook("Invalid signature") from e

        logger.info(f"Verified webhook event: {field_of(event, 'type')}")
        return event

    def fetch_line_items(self, session_id: str) -> List[Any]:
        try:
            result = stripe.checkout.Session.list_line_items(
                session_id, expand=["data.price.product"], limit=100
            )
        except stripe.error.StripeError as e:
            logger.error(f"Stripe error listing line items for {session_id}: {str(e)}")
            raise PaymentProviderError(f"Stripe error: {str(e)}") from e
        return list(field_of(result, "data", []))

    def handle_checkout_completed(self, db: Session, session: Any, line_items: List[Any]) -> KitchenOrder:
        """Persist the online order for a paid session.

        The order id is the session id, so a redelivered event returns the
        order created the first time.
        """
        session_id = field_of(session, "id")
        existing = db.get(KitchenOrder, session_id)
        if existing is not None:
            logger.info(f"Checkout session {session_id} already recorded, skipping")
            return existing

        metadata = field_of(session, "metadata", {})
        tenant_id = field_of(metadata, "tenant_id")
        if not tenant_id:
            raise InputRejection(f"Checkout session {session_id} has no tenant")
        is_delivery = field_of(metadata, "is_delivery") == "true"

        items = []
        for li in line_items:
            price = field_of(li, "price", {})
            product = field_of(price, "product", {})
            product_id = field_of(field_of(product, "metadata", {}), "product_id")
            items.append({
                "product_id": int(product_id) if product_id and str(product_id).isdigit() else None,
                "name": field_of(product, "name") or field_of(li, "description", ""),
                "quantity": field_of(li, "quantity", 0),
                "price": field_of(price, "unit_amount", 0) / 100,
            })

        order = KitchenOrder(
            id=session_id,
            tenant_id=tenant_id,
            table_id=None,
            items=items,
            total_amount=Decimal(field_of(session, "amount_total", 0)) / 100,
            status=OrderStatus.PENDING.value,
            source=OrderSource.ONLINE.value,
            is_delivery=is_delivery,
            delivery_address=field_of(metadata, "delivery_address") or None,
            confirmation_code=new_confirmation_code() if is_delivery else None,
            checkout_session_id=session_id,
        )
        db.add(order)
        commit_or_fail(db, "handle_checkout_completed")

        logger.info(
            f"Online order {session_id} created for tenant {tenant_id}: "
            f"total {order.total_amount}, delivery={is_delivery}"
        )
        return order
