import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from boxoffice.api.deps import get_gateway
from boxoffice.core.payment_gateways import PaymentGateway, StripeGateway
from boxoffice.database import get_db
from boxoffice.domain.errors import DomainError
from boxoffice.schemas.CommonResponse import ApiResponse
from boxoffice.schemas.order import PurchasedTicketOut
from boxoffice.schemas.payment import AuthorizeRequest, AuthorizeResponse, CaptureRequest, CaptureResponse, DirectPaymentRequest
from boxoffice.services import orders, payments
from boxoffice.workers.notifications import run_once as deliver_notifications

logger = logging.getLogger(__name__)

router = APIRouter( prefix="/payments", tags=["Payment"] )


def _capture_response(outcome: payments.CaptureOutcome) -> CaptureResponse:
    return CaptureResponse(
        orderId=outcome.order.id,
        orderNumber=outcome.order.order_number,
        transactionId=outcome.transaction_id,
        amount=float(outcome.amount),
        currency=outcome.currency,
        status=outcome.status,
        tickets=[PurchasedTicketOut.from_ticket(t) for t in outcome.tickets],
    )




@router.post("/authorize", response_model=ApiResponse[AuthorizeResponse])
def authorize_payment(
    request: AuthorizeRequest,
    gateway: PaymentGateway = Depends(get_gateway),
    db: Session = Depends(get_db)
):
    authorization = payments.authorize_payment(db, gateway, request.orderId, request.description)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Payment authorization created",
        data=AuthorizeResponse(
            authorizationId=authorization.authorization_id,
            approvalUrl=authorization.approval_url
        )
    )




@router.post("/capture", response_model=ApiResponse[CaptureResponse])
def capture_payment(
    request: CaptureRequest,
    background_tasks: BackgroundTasks,
    gateway: PaymentGateway = Depends(get_gateway),
    db: Session = Depends(get_db)
):
    outcome = payments.capture_payment(db, gateway, request.authorizationId, request.orderId, request.paymentMethod)
    background_tasks.add_task(deliver_notifications)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Payment already captured" if outcome.already_paid else "Payment captured",
        data=_capture_response(outcome)
    )




@router.post("/process", response_model=ApiResponse[CaptureResponse])
def process_payment(
    request: DirectPaymentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    outcome = payments.process_direct_payment(db, request.orderId, request.paymentMethod)
    background_tasks.add_task(deliver_notifications)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Payment processed",
        data=_capture_response(outcome)
    )




def _handle_stripe_event(db: Session, gateway: StripeGateway, event: dict) -> str:
    session = event['data']['object']
    order_id = session.get('client_reference_id') or (session.get('metadata') or {}).get('order_id')
    if not order_id:
        logger.warning("Stripe event %s has no order reference", event.get('id'))
        return "ignored"

    if event['type'] == 'checkout.session.completed':
        payments.capture_payment(db, gateway, session['id'], int(order_id), gateway.method)
        return "captured"
    if event['type'] == 'checkout.session.expired':
        orders.cancel_order(db, int(order_id))
        return "cancelled"
    return "ignored"




@router.post("/webhook", response_model=ApiResponse[dict])
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    payload = await request.body()
    sig_header = request.headers.get("Stripe-Signature")
    gateway = StripeGateway()

    event = gateway.parse_webhook(payload, sig_header)

    try:
        outcome = await run_in_threadpool(_handle_stripe_event, db, gateway, event)
    except DomainError as e:
        logger.error("Stripe event %s (%s) not applied: %s", event.get('id'), event.get('type'), e)
        outcome = "failed"

    if outcome == "captured":
        background_tasks.add_task(deliver_notifications)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Webhook received",
        data={"result": outcome}
    )
