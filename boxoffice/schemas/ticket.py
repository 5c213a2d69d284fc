from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from boxoffice.schemas.order import OrderOut, PurchasedTicketOut


class CompletePurchaseRequest(BaseModel):
    orderId: int
    paymentTransactionId: str = Field(min_length=1)
    paymentMethod: str = Field(min_length=1)





class CompletePurchaseResponse(BaseModel):
    order: OrderOut
    tickets: List[PurchasedTicketOut]
    redirectTarget: str




class VerifyTicketRequest(BaseModel):
    credentialPayload: Union[str, Dict[str, Any]]
    staffId: Optional[str] = None
    location: Optional[str] = None

    @field_validator('credentialPayload')
    @classmethod
    def not_empty(cls, v):
        if isinstance(v, str) and not v:
            raise ValueError('Credential payload is required')
        return v




class VerifyTicketResponse(BaseModel):
    success: bool
    ticketNumber: Optional[str] = None
    customerName: Optional[str] = None
    categoryName: Optional[str] = None
    redeemedAt: Optional[datetime] = None
    errorKind: Optional[str] = None
