from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional, Union
from datetime import datetime
from boxoffice.core.qr import qr_data_url


class CustomerIn(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator('name', 'email', 'phone', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v




class LineItemIn(BaseModel):
    categoryId: Union[int, str]
    quantity: int = Field(ge=1)




class PurchaseRequest(BaseModel):
    eventId: int
    lineItems: List[LineItemIn] = Field(min_length=1)
    customer: CustomerIn





class PurchasedTicketOut(BaseModel):
    id: int
    ticketNumber: str
    categoryName: str
    customerName: str
    pricePaid: float
    status: str
    credentialPayload: str
    qrCodeImage: str
    redeemedAt: Optional[datetime] = None

    @classmethod
    def from_ticket(cls, ticket):
        return cls(
            id=ticket.id,
            ticketNumber=ticket.ticket_number,
            categoryName=ticket.ticket_type_name,
            customerName=ticket.customer_name,
            pricePaid=float(ticket.price_paid),
            status=ticket.status,
            credentialPayload=ticket.qr_code_data,
            qrCodeImage=qr_data_url(ticket.qr_code_data),
            redeemedAt=ticket.redeemed_at,
        )




class PurchaseResponse(BaseModel):
    orderId: int
    orderNumber: str
    totalAmount: float
    currency: str
    paymentRequired: bool
    paymentHandle: Optional[str] = None
    tickets: Optional[List[PurchasedTicketOut]] = None




class OrderOut(BaseModel):
    id: int
    orderNumber: str
    eventId: int
    customerName: str
    customerEmail: str
    customerPhone: Optional[str] = None
    totalAmount: float
    currency: str
    status: str
    paymentStatus: str
    paymentMethod: Optional[str] = None
    paymentTransactionId: Optional[str] = None
    paidAt: Optional[datetime] = None
    createdAt: datetime
    tickets: List[PurchasedTicketOut] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order, tickets=None):
        return cls(
            id=order.id,
            orderNumber=order.order_number,
            eventId=order.event_id,
            customerName=order.customer_name,
            customerEmail=order.customer_email,
            customerPhone=order.customer_phone,
            totalAmount=float(order.total_amount),
            currency=order.currency,
            status=order.status,
            paymentStatus=order.payment_status,
            paymentMethod=order.payment_method,
            paymentTransactionId=order.payment_transaction_id,
            paidAt=order.paid_at,
            createdAt=order.created_at,
            tickets=[PurchasedTicketOut.from_ticket(t) for t in (order.tickets if tickets is None else tickets)],
        )
