import logging
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session
from boxoffice.api.deps import get_gateway
from boxoffice.core.payment_gateways import PaymentGateway
from boxoffice.database import get_db
from boxoffice.domain.errors import DomainError
from boxoffice.domain.value_objects import CustomerSnapshot
from boxoffice.schemas.CommonResponse import ApiResponse
from boxoffice.schemas.order import OrderOut, PurchaseRequest, PurchaseResponse, PurchasedTicketOut
from boxoffice.services import issuance, orders, payments
from boxoffice.workers.notifications import run_once as deliver_notifications

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])

FREE_METHOD = "free"


@router.post("/tickets/purchase", response_model=ApiResponse[PurchaseResponse])
def purchase_tickets(
    request: PurchaseRequest,
    background_tasks: BackgroundTasks,
    gateway: PaymentGateway = Depends(get_gateway),
    db: Session = Depends(get_db)
):
    placement = orders.create_order(
        db,
        event_id=request.eventId,
        line_items=[(item.categoryId, item.quantity) for item in request.lineItems],
        customer=CustomerSnapshot(
            name=request.customer.name,
            email=request.customer.email,
            phone=request.customer.phone,
        ),
    )
    order = placement.order

    if not placement.payment_required:
        completed = issuance.complete_purchase(db, order.id, f"FREE-{order.order_number}", FREE_METHOD)
        background_tasks.add_task(deliver_notifications)
        return ApiResponse(
            success=True,
            statusCode=status.HTTP_200_OK,
            message="Tickets issued",
            data=PurchaseResponse(
                orderId=order.id,
                orderNumber=order.order_number,
                totalAmount=float(order.total_amount),
                currency=order.currency,
                paymentRequired=False,
                tickets=[PurchasedTicketOut.from_ticket(t) for t in completed.tickets],
            )
        )

    payment_handle = None
    try:
        payment_handle = payments.authorize_payment(db, gateway, order.id).approval_url
    except DomainError as e:
        # the order stands; the client can retry through /payments/authorize
        logger.warning("Could not open payment for order %s: %s", order.order_number, e)

    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Order created",
        data=PurchaseResponse(
            orderId=order.id,
            orderNumber=order.order_number,
            totalAmount=float(order.total_amount),
            currency=order.currency,
            paymentRequired=True,
            paymentHandle=payment_handle,
        )
    )




@router.get("/orders/{order_id}", response_model=ApiResponse[OrderOut])
def get_order(order_id: int, db: Session = Depends(get_db)):
    order = orders.get_order(db, order_id)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Order retrieved",
        data=OrderOut.from_order(order, issuance.tickets_for_order(db, order.id))
    )
