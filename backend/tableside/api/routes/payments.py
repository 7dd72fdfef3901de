"""Online checkout and Stripe webhook routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Header, Request

from tableside.core.rate_limit import limiter
from tableside.db.session import DbSession
from tableside.schemas.payments import CheckoutRequest, CheckoutResponse
from tableside.services.stripe_checkout import StripeCheckoutService, field_of

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/checkout-session", response_model=CheckoutResponse)
@limiter.limit("10/minute")
async def create_checkout_session(request: Request, body: CheckoutRequest, db: DbSession):
    """Create a Stripe Checkout Session for a customer cart. Public: customers are not staff."""
    result = StripeCheckoutService().create_checkout_session(
        db,
        body.tenant_id,
        [entry.model_dump() for entry in body.cart],
        success_url=body.success_url,
        cancel_url=body.cancel_url,
        is_delivery=body.is_delivery,
        delivery_address=body.delivery_address,
    )
    return result


@router.post("/webhook")
@limiter.limit("60/minute")
async def stripe_webhook(
    request: Request,
    db: DbSession,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
):
    """Handle Stripe webhook events.

    This endpoint does NOT require authentication. Stripe signs the
    payload and we verify using ``STRIPE_WEBHOOK_SECRET``.
    """
    service = StripeCheckoutService()
    payload = await request.body()
    event = service.verify_webhook(payload, stripe_signature)

    event_type = field_of(event, "type")
    if event_type != "checkout.session.completed":
        logger.debug(f"Ignoring webhook event {event_type}")
        return {"received": True}

    session = field_of(field_of(event, "data", {}), "object", {})
    if field_of(session, "mode", "payment") != "payment":
        return {"received": True}

    line_items = service.fetch_line_items(field_of(session, "id"))
    order = service.handle_checkout_completed(db, session, line_items)
    return {"received": True, "order_id": order.id}
