import logging
from decimal import Decimal

import httpx

from boxoffice.core.config import settings
from boxoffice.core.payment_gateways.base import Authorization, CaptureResult, PaymentGateway
from boxoffice.domain.errors import (
    PaymentNotCompletedError,
    ProviderCredentialsMissingError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"
ALREADY_CAPTURED = "ORDER_ALREADY_CAPTURED"


class PayPalGateway(PaymentGateway):
    """PayPal Orders v2 with intent CAPTURE."""

    name = "PayPal"
    method = "paypal"

    def __init__(
        self,
        client_id: str | None = None,
        secret: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.client_id = client_id if client_id is not None else settings.PAYPAL_CLIENT_ID
        self.secret = secret if secret is not None else settings.PAYPAL_SECRET_ID
        self.base_url = (base_url or settings.PAYPAL_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.Client:
        if not self.client_id or not self.secret:
            raise ProviderCredentialsMissingError(self.name)
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _access_token(self, client: httpx.Client) -> str:
        r = client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.secret),
        )
        if r.status_code != 200:
            logger.error("PayPal token request failed with %s: %s", r.status_code, r.text)
            raise ProviderUnavailableError(self.name, "Failed to authenticate with PayPal")
        return r.json()["access_token"]

    def create_authorization(self, amount, currency, order_id, description):
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": str(order_id),
                    "description": description,
                    "amount": {"currency_code": currency.upper(), "value": f"{Decimal(amount):.2f}"},
                }
            ],
            "application_context": {
                "brand_name": settings.SITE_NAME,
                "user_action": "PAY_NOW",
                "return_url": f"{settings.FRONTEND_URL}/events/payment/success?orderId={order_id}",
                "cancel_url": f"{settings.FRONTEND_URL}/events/payment/cancel?orderId={order_id}",
            },
        }
        try:
            with self._client() as client:
                token = self._access_token(client)
                r = client.post(
                    "/v2/checkout/orders",
                    json=body,
                    headers={"Authorization": f"Bearer {token}", "PayPal-Request-Id": f"order-{order_id}"},
                )
        except httpx.HTTPError as e:
            logger.error("PayPal order creation for order %s failed: %s", order_id, e)
            raise ProviderUnavailableError(self.name, str(e)) from e

        if r.status_code not in (200, 201):
            logger.error("PayPal order creation returned %s: %s", r.status_code, r.text)
            raise ProviderUnavailableError(self.name, f"HTTP {r.status_code}")

        data = r.json()
        approval_url = next((link["href"] for link in data.get("links", []) if link.get("rel") == "approve"), None)
        logger.info("PayPal order %s created for order %s", data["id"], order_id)
        return Authorization(authorization_id=data["id"], approval_url=approval_url)

    def capture_authorization(self, authorization_id):
        try:
            with self._client() as client:
                token = self._access_token(client)
                headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
                r = client.post(f"/v2/checkout/orders/{authorization_id}/capture", headers=headers)
                if r.status_code == 422 and _issue(r) == ALREADY_CAPTURED:
                    logger.info("PayPal order %s was already captured, reading it back", authorization_id)
                    r = client.get(f"/v2/checkout/orders/{authorization_id}", headers=headers)
        except httpx.HTTPError as e:
            logger.error("PayPal capture of %s failed: %s", authorization_id, e)
            raise ProviderUnavailableError(self.name, str(e)) from e

        if r.status_code >= 500:
            raise ProviderUnavailableError(self.name, f"HTTP {r.status_code}")
        data = r.json()
        if r.status_code >= 400:
            logger.error("PayPal capture of %s rejected: %s", authorization_id, data)
            raise PaymentNotCompletedError(_issue(r) or data.get("name") or f"HTTP {r.status_code}")

        status = data.get("status")
        if status != COMPLETED:
            logger.warning("PayPal order %s not completed, status %s", authorization_id, status)
            raise PaymentNotCompletedError(status or "UNKNOWN")

        unit = data["purchase_units"][0]
        capture = unit["payments"]["captures"][0]
        return CaptureResult(
            transaction_id=capture["id"],
            amount=Decimal(capture["amount"]["value"]),
            currency=capture["amount"]["currency_code"],
            status=status,
            order_reference=unit.get("reference_id"),
            raw={"paypal_order_id": authorization_id},
        )


def _issue(response: httpx.Response):
    try:
        details = response.json().get("details") or []
    except ValueError:
        return None
    return details[0].get("issue") if details else None
