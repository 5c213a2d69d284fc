"""Payment orchestration: authorize with a provider, capture, then issue.

Capture is idempotent per order: once an order is paid, further captures
return the stored transaction without calling the provider again.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from boxoffice.core.config import settings
from boxoffice.core.identifiers import generate_transaction_id
from boxoffice.core.payment_gateways import Authorization, PaymentGateway
from boxoffice.domain.errors import (
    AlreadyPaidError,
    DomainError,
    InvalidPaymentError,
    OrderCancelledError,
)
from boxoffice.domain.value_objects import quantize_money
from boxoffice.models.order import PaymentRecord, TicketOrder
from boxoffice.models.ticket import PurchasedTicket
from boxoffice.services import issuance
from boxoffice.services.orders import get_order, mark_paid

logger = logging.getLogger(__name__)

SIMULATED_METHODS = ("credit_card", "debit_card")


@dataclass
class CaptureOutcome:
    order: TicketOrder
    transaction_id: str
    amount: Decimal
    currency: str
    status: str = "completed"
    tickets: list[PurchasedTicket] = field(default_factory=list)
    already_paid: bool = False


def _payable_order(db: Session, order_id: int) -> TicketOrder:
    order = get_order(db, order_id)
    if order.status == "cancelled":
        raise OrderCancelledError(order_id)
    if order.is_paid:
        raise AlreadyPaidError(order_id)
    if order.total_amount is None or order.total_amount <= 0:
        raise InvalidPaymentError("Order has nothing to pay")
    return order


def authorize_payment(
    db: Session,
    gateway: PaymentGateway,
    order_id: int,
    description: Optional[str] = None,
) -> Authorization:
    """Open a provider authorization for the order's total. Local state is unchanged."""
    order = _payable_order(db, order_id)
    description = description or f"Tickets for {order.event.title} ({order.order_number})"
    authorization = gateway.create_authorization(
        amount=quantize_money(order.total_amount),
        currency=order.currency,
        order_id=order.id,
        description=description,
    )
    logger.info(
        "Authorization %s opened with %s for order %s (%s %s)",
        authorization.authorization_id, gateway.name, order.order_number, order.total_amount, order.currency,
    )
    return authorization


def record_payment(
    db: Session,
    order: TicketOrder,
    amount: Decimal,
    payment_method: str,
    transaction_id: str,
    provider_reference: Optional[str] = None,
    details: Optional[dict] = None,
) -> None:
    """Write the payment audit row. Failures are logged and swallowed."""
    try:
        db.add(PaymentRecord(
            ticket_order_id=order.id,
            amount=amount,
            currency=order.currency,
            payment_method=payment_method,
            transaction_id=transaction_id,
            provider_reference=provider_reference,
            status="completed",
            details=details,
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not record payment %s for order %s", transaction_id, order.order_number)


def _paid_outcome(db: Session, order_id: int) -> CaptureOutcome:
    result = issuance.ensure_tickets_issued(db, order_id)
    order = result.order
    return CaptureOutcome(
        order=order,
        transaction_id=order.payment_transaction_id,
        amount=quantize_money(order.total_amount),
        currency=order.currency,
        tickets=result.tickets,
        already_paid=True,
    )


def capture_payment(
    db: Session,
    gateway: PaymentGateway,
    authorization_id: str,
    order_id: int,
    payment_method: Optional[str] = None,
) -> CaptureOutcome:
    """Capture an approved authorization and issue the order's tickets.

    Raises:
        OrderNotFoundError, OrderCancelledError, InvalidPaymentError, PaymentNotCompletedError,
        ProviderUnavailableError, SoldOutError
    """
    payment_method = payment_method or gateway.method
    order = get_order(db, order_id)
    if order.status == "cancelled":
        raise OrderCancelledError(order_id)
    if order.is_paid:
        logger.info("Order %s already paid, skipping provider capture", order.order_number)
        return _paid_outcome(db, order_id)

    captured = gateway.capture_authorization(authorization_id)
    if captured.order_reference != str(order_id):
        logger.error(
            "RECONCILIATION REQUIRED: %s capture %s of %s belongs to order %s, not %s; order left unpaid",
            gateway.name, captured.transaction_id, authorization_id, captured.order_reference, order.order_number,
        )
        raise InvalidPaymentError(f"Authorization {authorization_id} does not belong to order {order.order_number}")

    expected = quantize_money(order.total_amount)
    if quantize_money(captured.amount) != expected or captured.currency.upper() != order.currency.upper():
        logger.warning(
            "Reconciliation: order %s expected %s %s but %s captured %s %s (%s)",
            order.order_number, expected, order.currency, gateway.name,
            captured.amount, captured.currency, captured.transaction_id,
        )

    try:
        mark_paid(db, order_id, payment_method, captured.transaction_id)
    except AlreadyPaidError:
        logger.info("Order %s was marked paid by a concurrent capture", order.order_number)
        return _paid_outcome(db, order_id)

    record_payment(
        db, order, captured.amount, payment_method, captured.transaction_id,
        provider_reference=authorization_id, details=captured.raw,
    )
    return _issue_after_payment(db, order_id, captured.transaction_id, captured.amount, captured.currency)


def process_direct_payment(db: Session, order_id: int, payment_method: str = "credit_card") -> CaptureOutcome:
    """Settle an order with a simulated card transaction."""
    if not settings.ALLOW_SIMULATED_PAYMENTS:
        raise InvalidPaymentError("Direct card payments are disabled")
    if payment_method not in SIMULATED_METHODS:
        raise InvalidPaymentError(f"Unsupported payment method {payment_method}")

    order = get_order(db, order_id)
    if order.status == "cancelled":
        raise OrderCancelledError(order_id)
    if order.is_paid:
        return _paid_outcome(db, order_id)

    transaction_id = generate_transaction_id()
    try:
        mark_paid(db, order_id, payment_method, transaction_id)
    except AlreadyPaidError:
        return _paid_outcome(db, order_id)

    amount = quantize_money(order.total_amount)
    record_payment(db, order, amount, payment_method, transaction_id, details={"simulated": True})
    return _issue_after_payment(db, order_id, transaction_id, amount, order.currency)


def _issue_after_payment(db: Session, order_id: int, transaction_id: str, amount: Decimal, currency: str) -> CaptureOutcome:
    try:
        result = issuance.ensure_tickets_issued(db, order_id)
    except DomainError as exc:
        logger.error(
            "RECONCILIATION REQUIRED: payment %s captured for order %s but tickets were not issued (%s)",
            transaction_id, order_id, exc.code.value,
        )
        raise

    return CaptureOutcome(
        order=result.order,
        transaction_id=transaction_id,
        amount=amount,
        currency=currency,
        tickets=result.tickets,
    )
