"""Domain error codes for ticket ordering, payment, issuance and redemption."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_IN_PAST = "EVENT_IN_PAST"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    MISSING_CUSTOMER_FIELDS = "MISSING_CUSTOMER_FIELDS"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ALREADY_PAID = "ALREADY_PAID"
    ORDER_NOT_PAID = "ORDER_NOT_PAID"
    ALREADY_ISSUED = "ALREADY_ISSUED"
    SOLD_OUT = "SOLD_OUT"
    SELECTION_NOT_FOUND = "SELECTION_NOT_FOUND"
    INVALID_PAYMENT = "INVALID_PAYMENT"
    PROVIDER_CREDENTIALS_MISSING = "PROVIDER_CREDENTIALS_MISSING"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PAYMENT_NOT_COMPLETED = "PAYMENT_NOT_COMPLETED"
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    ALREADY_REDEEMED = "ALREADY_REDEEMED"
    TICKET_VOIDED = "TICKET_VOIDED"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str
    status_code: int = 400

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFoundError(DomainError):
    def __init__(self, event_id) -> None:
        super().__init__(code=ErrorCode.EVENT_NOT_FOUND, message="Event not found", status_code=404)
        self.event_id = event_id


class EventInPastError(DomainError):
    def __init__(self, event_id) -> None:
        super().__init__(
            code=ErrorCode.EVENT_IN_PAST,
            message="Cannot purchase tickets for past events",
        )
        self.event_id = event_id


class CategoryNotFoundError(DomainError):
    def __init__(self, category, message: str | None = None) -> None:
        super().__init__(
            code=ErrorCode.CATEGORY_NOT_FOUND,
            message=message or f"Ticket type {category} not found",
            status_code=404,
        )
        self.category = category


class InsufficientInventoryError(DomainError):
    """Raised when a selection asks for more than a category has left."""

    def __init__(self, category_name: str, available: int) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_INVENTORY,
            message=f"Only {available} {category_name} tickets available",
            status_code=409,
        )
        self.category_name = category_name
        self.available = available


class MissingCustomerFieldsError(DomainError):
    def __init__(self, fields: list[str]) -> None:
        super().__init__(
            code=ErrorCode.MISSING_CUSTOMER_FIELDS,
            message=f"Customer {' and '.join(fields)} required",
        )
        self.fields = fields


class OrderNotFoundError(DomainError):
    def __init__(self, order_id) -> None:
        super().__init__(code=ErrorCode.ORDER_NOT_FOUND, message="Order not found", status_code=404)
        self.order_id = order_id


class OrderCancelledError(DomainError):
    def __init__(self, order_id) -> None:
        super().__init__(
            code=ErrorCode.ORDER_CANCELLED,
            message="Order has been cancelled",
            status_code=409,
        )
        self.order_id = order_id


class AlreadyPaidError(DomainError):
    """Raised by the unpaid -> paid guard. Orchestration treats it as success."""

    def __init__(self, order_id) -> None:
        super().__init__(code=ErrorCode.ALREADY_PAID, message="Order already paid", status_code=409)
        self.order_id = order_id


class OrderNotPaidError(DomainError):
    def __init__(self, order_id) -> None:
        super().__init__(
            code=ErrorCode.ORDER_NOT_PAID,
            message="Tickets can only be issued for paid orders",
            status_code=409,
        )
        self.order_id = order_id


class AlreadyIssuedError(DomainError):
    """Raised when tickets for an order were minted by an earlier call."""

    def __init__(self, order_id) -> None:
        super().__init__(code=ErrorCode.ALREADY_ISSUED, message="Tickets already issued", status_code=409)
        self.order_id = order_id


class SoldOutError(DomainError):
    """Raised at issuance time when a category no longer has room.

    Payment has usually been captured by then, so this needs an operator.
    """

    def __init__(self, category_name: str, requested: int) -> None:
        super().__init__(
            code=ErrorCode.SOLD_OUT,
            message=f"{category_name} is sold out",
            status_code=409,
        )
        self.category_name = category_name
        self.requested = requested


class SelectionNotFoundError(DomainError):
    def __init__(self, order_id, message: str | None = None) -> None:
        super().__init__(
            code=ErrorCode.SELECTION_NOT_FOUND,
            message=message or "Ticket selection not found. Please try purchasing again.",
            status_code=422,
        )
        self.order_id = order_id


class InvalidPaymentError(DomainError):
    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_PAYMENT, message=message)


class ProviderCredentialsMissingError(DomainError):
    def __init__(self, provider: str) -> None:
        super().__init__(
            code=ErrorCode.PROVIDER_CREDENTIALS_MISSING,
            message=f"{provider} credentials not configured",
            status_code=500,
        )
        self.provider = provider


class ProviderUnavailableError(DomainError):
    """Raised when the payment provider cannot be reached or errors out."""

    def __init__(self, provider: str, detail: str = "") -> None:
        super().__init__(
            code=ErrorCode.PROVIDER_UNAVAILABLE,
            message=f"{provider} is unavailable, please try again",
            status_code=502,
        )
        self.provider = provider
        self.detail = detail


class PaymentNotCompletedError(DomainError):
    def __init__(self, provider_status: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_NOT_COMPLETED,
            message=f"Payment not completed. Status: {provider_status}",
            status_code=402,
        )
        self.provider_status = provider_status


class TicketNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.TICKET_NOT_FOUND, message="Ticket not found", status_code=404)


class AlreadyRedeemedError(DomainError):
    def __init__(self, ticket_number: str, redeemed_at: datetime | None) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_REDEEMED,
            message="Ticket has already been redeemed",
            status_code=409,
        )
        self.ticket_number = ticket_number
        self.redeemed_at = redeemed_at


class TicketVoidedError(DomainError):
    def __init__(self, ticket_number: str) -> None:
        super().__init__(code=ErrorCode.TICKET_VOIDED, message="Ticket is void", status_code=409)
        self.ticket_number = ticket_number


class PersistenceError(DomainError):
    """Wraps database failures with the entity and operation involved."""

    def __init__(self, entity: str, operation: str) -> None:
        super().__init__(
            code=ErrorCode.PERSISTENCE_ERROR,
            message="A storage error occurred, please try again",
            status_code=500,
        )
        self.entity = entity
        self.operation = operation

    def __str__(self) -> str:
        return f"{self.code.value}: {self.operation} {self.entity} failed"
