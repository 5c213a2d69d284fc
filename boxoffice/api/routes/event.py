from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from boxoffice.database import get_db
from boxoffice.schemas.CommonResponse import ApiResponse
from boxoffice.schemas.event import CategoryAvailability, EventAvailability
from boxoffice.services import inventory


router = APIRouter( prefix="/events", tags=["Events"] )


@router.get("/{event_id}/availability", response_model=ApiResponse[EventAvailability])
def get_event_availability(event_id: int, db: Session = Depends(get_db)):
    event, rows = inventory.event_availability(db, event_id)
    return ApiResponse(
        success=True,
        statusCode=status.HTTP_200_OK,
        message="Availability retrieved",
        data=EventAvailability(
            eventId=event.id,
            title=event.title,
            eventStart=event.event_start,
            location=event.location,
            categories=[
                CategoryAvailability(
                    categoryId=row.key if isinstance(row.key, int) else None,
                    categoryKey=str(row.key),
                    name=row.name,
                    price=float(row.price),
                    currency=row.currency,
                    quantityTotal=row.quantity_total,
                    quantitySold=row.quantity_sold,
                    available=row.available
                )
                for row in rows
            ]
        )
    )
