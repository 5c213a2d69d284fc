from boxoffice.core.config import settings
from boxoffice.core.payment_gateways.base import Authorization, CaptureResult, PaymentGateway
from boxoffice.core.payment_gateways.paypal_gateway import PayPalGateway
from boxoffice.core.payment_gateways.stripe_gateway import StripeGateway

GATEWAYS = {
    "stripe": StripeGateway,
    "paypal": PayPalGateway,
}


def get_payment_gateway(provider: str | None = None) -> PaymentGateway:
    provider = (provider or settings.PAYMENT_PROVIDER).lower()
    try:
        return GATEWAYS[provider]()
    except KeyError:
        raise ValueError(f"Unknown payment provider {provider!r}") from None
