from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from boxoffice.api.deps import require_admin, require_staff
from boxoffice.database import get_db
from boxoffice.domain.errors import AlreadyRedeemedError, TicketNotFoundError, TicketVoidedError
from boxoffice.schemas.CommonResponse import ApiResponse
from boxoffice.schemas.order import OrderOut, PurchasedTicketOut
from boxoffice.schemas.ticket import CompletePurchaseRequest, CompletePurchaseResponse, VerifyTicketRequest, VerifyTicketResponse
from boxoffice.services import issuance, redemption
from boxoffice.workers.notifications import run_once as deliver_notifications


router = APIRouter( prefix="/tickets", tags=["Tickets"] )


@router.post("/complete-purchase", response_model=ApiResponse[CompletePurchaseResponse])
def complete_purchase(
    request: CompletePurchaseRequest,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_staff),
    db: Session = Depends(get_db)
):
    completed = issuance.complete_purchase(db, request.orderId, request.paymentTransactionId, request.paymentMethod)
    background_tasks.add_task(deliver_notifications)
    tickets = [PurchasedTicketOut.from_ticket(t) for t in completed.tickets]
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Purchase completed",
        data=CompletePurchaseResponse(
            order=OrderOut.from_order(completed.order, completed.tickets),
            tickets=tickets,
            redirectTarget=completed.redirect_target
        )
    )




def _rejection(status_code: int, message: str, data: VerifyTicketResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(
            success=False,
            statusCode=status_code,
            message=message,
            data=data
        ).model_dump(mode="json")
    )




@router.post("/verify", response_model=ApiResponse[VerifyTicketResponse])
def verify_ticket(
    request: VerifyTicketRequest,
    current_user: dict = Depends(require_staff),
    db: Session = Depends(get_db)
):
    staff_id = request.staffId or current_user['email']
    try:
        result = redemption.redeem(db, request.credentialPayload, staff_id, request.location)
    except TicketNotFoundError as e:
        return _rejection(e.status_code, e.message, VerifyTicketResponse(success=False, errorKind=e.code.value))
    except AlreadyRedeemedError as e:
        return _rejection(e.status_code, e.message, VerifyTicketResponse(
            success=False,
            errorKind=e.code.value,
            ticketNumber=e.ticket_number,
            redeemedAt=e.redeemed_at
        ))
    except TicketVoidedError as e:
        return _rejection(e.status_code, e.message, VerifyTicketResponse(
            success=False,
            errorKind=e.code.value,
            ticketNumber=e.ticket_number
        ))

    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Ticket verified",
        data=VerifyTicketResponse(
            success=True,
            ticketNumber=result.ticket_number,
            customerName=result.customer_name,
            categoryName=result.category_name,
            redeemedAt=result.redeemed_at
        )
    )




@router.get("/{ticket_id}", response_model=ApiResponse[PurchasedTicketOut])
def get_ticket(
    ticket_id: int,
    current_user: dict = Depends(require_staff),
    db: Session = Depends(get_db)
):
    ticket = redemption.get_ticket(db, ticket_id)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Ticket retrieved",
        data=PurchasedTicketOut.from_ticket(ticket)
    )




@router.post("/{ticket_id}/void", response_model=ApiResponse[PurchasedTicketOut])
def void_ticket(
    ticket_id: int,
    current_user: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    ticket = redemption.void_ticket(db, ticket_id)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Ticket voided",
        data=PurchasedTicketOut.from_ticket(ticket)
    )
