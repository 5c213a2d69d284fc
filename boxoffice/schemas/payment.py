from pydantic import BaseModel, Field
from typing import List, Optional
from boxoffice.schemas.order import PurchasedTicketOut


class AuthorizeRequest(BaseModel):
    orderId: int
    description: Optional[str] = None




class AuthorizeResponse(BaseModel):
    authorizationId: str
    approvalUrl: Optional[str] = None




class CaptureRequest(BaseModel):
    authorizationId: str = Field(min_length=1)
    orderId: int
    paymentMethod: Optional[str] = None




class DirectPaymentRequest(BaseModel):
    orderId: int
    paymentMethod: str = 'credit_card'




class CaptureResponse(BaseModel):
    orderId: int
    orderNumber: str
    transactionId: str
    amount: float
    currency: str
    status: str
    tickets: List[PurchasedTicketOut] = Field(default_factory=list)
