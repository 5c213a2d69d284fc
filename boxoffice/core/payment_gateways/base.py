"""Provider-neutral two-step payment interface: authorize, then capture."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Authorization:
    authorization_id: str
    approval_url: Optional[str]


@dataclass(frozen=True)
class CaptureResult:
    transaction_id: str
    amount: Decimal
    currency: str
    status: str
    order_reference: Optional[str] = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)


class PaymentGateway(ABC):
    name: str = "gateway"
    method: str = "card"

    @abstractmethod
    def create_authorization(self, amount: Decimal, currency: str, order_id: int, description: str) -> Authorization:
        """Start a payment the customer still has to approve."""

    @abstractmethod
    def capture_authorization(self, authorization_id: str) -> CaptureResult:
        """Settle an approved authorization.

        Raises:
            PaymentNotCompletedError: If the provider does not report a terminal success.
            ProviderUnavailableError: If the provider cannot be reached.
        """
