import json
import logging
from decimal import Decimal

import stripe

from boxoffice.core.config import settings
from boxoffice.core.payment_gateways.base import Authorization, CaptureResult, PaymentGateway
from boxoffice.domain.errors import (
    InvalidPaymentError,
    PaymentNotCompletedError,
    ProviderCredentialsMissingError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
REQUIRES_CAPTURE = "requires_capture"


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount or 0) / 100).quantize(Decimal("0.01"))


class StripeGateway(PaymentGateway):
    """Checkout Session with a manually captured PaymentIntent."""

    name = "Stripe"
    method = "stripe"

    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET

    def _require_key(self) -> None:
        if not self.api_key:
            raise ProviderCredentialsMissingError(self.name)
        stripe.api_key = self.api_key

    def create_authorization(self, amount, currency, order_id, description):
        self._require_key()
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency.lower(),
                            "product_data": {"name": description},
                            "unit_amount": to_minor_units(amount),
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                payment_intent_data={"capture_method": "manual"},
                client_reference_id=str(order_id),
                metadata={"order_id": str(order_id)},
                success_url=f"{settings.FRONTEND_URL}/events/payment/success?session_id={{CHECKOUT_SESSION_ID}}&orderId={order_id}",
                cancel_url=f"{settings.FRONTEND_URL}/events/payment/cancel?orderId={order_id}",
                idempotency_key=f"order-{order_id}-authorize",
            )
        except stripe.StripeError as e:
            logger.error("Stripe session creation for order %s failed: %s", order_id, e)
            raise ProviderUnavailableError(self.name, str(e)) from e

        logger.info("Stripe session %s created for order %s", session.id, order_id)
        return Authorization(authorization_id=session.id, approval_url=session.url)

    def capture_authorization(self, authorization_id):
        self._require_key()
        try:
            session = stripe.checkout.Session.retrieve(authorization_id)
            intent_id = session.payment_intent
            if not intent_id:
                raise PaymentNotCompletedError(session.payment_status or "unpaid")

            intent = stripe.PaymentIntent.retrieve(intent_id)
            if intent.status == REQUIRES_CAPTURE:
                intent = stripe.PaymentIntent.capture(
                    intent_id,
                    idempotency_key=f"intent-{intent_id}-capture",
                )
        except stripe.StripeError as e:
            logger.error("Stripe capture of %s failed: %s", authorization_id, e)
            raise ProviderUnavailableError(self.name, str(e)) from e

        order_reference = getattr(session, "client_reference_id", None)
        metadata = getattr(session, "metadata", None)
        if not order_reference and metadata and "order_id" in metadata:
            order_reference = metadata["order_id"]

        if intent.status != SUCCEEDED:
            logger.warning("Stripe intent %s not captured, status %s", intent_id, intent.status)
            raise PaymentNotCompletedError(intent.status)

        return CaptureResult(
            transaction_id=intent.id,
            amount=from_minor_units(intent.amount_received or intent.amount),
            currency=(intent.currency or settings.DEFAULT_CURRENCY).upper(),
            status=intent.status,
            order_reference=order_reference,
            raw={"session_id": authorization_id, "payment_intent": intent.id},
        )

    def parse_webhook(self, payload: bytes, signature: str | None):
        if not self.webhook_secret:
            raise ProviderCredentialsMissingError(self.name)
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("Rejected Stripe webhook: %s", e)
            raise InvalidPaymentError("Invalid signature") from e
        return json.loads(payload)
