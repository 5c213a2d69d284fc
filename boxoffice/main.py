import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from fastapi.responses import JSONResponse
from boxoffice.core.app_logger import setup_logging
from boxoffice.database import get_db, init_db
from boxoffice.api.routes import event, orders, payment, tickets
from boxoffice.domain.errors import DomainError
from boxoffice.schemas.CommonResponse import ApiResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    yield


app = FastAPI(title="boxoffice", lifespan=lifespan)

def format_errors(errors):
    messages = []
    for e in errors:
        msg = e.get("msg", "Invalid input")
        messages.append(msg)
    return messages




@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse(
            success=False,
            statusCode=exc.status_code,
            message=exc.message,
            data={"code": exc.code.value}
        ).model_dump()
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ApiResponse(
            success=False,
            statusCode=status.HTTP_400_BAD_REQUEST,
            message="Validation failed",
            data={"errors": format_errors(exc.errors())}
        ).model_dump()
    )


@app.exception_handler(ValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ApiResponse(
            success=False,
            statusCode= status.HTTP_400_BAD_REQUEST,
            message="Validation failed",
            data={"errors": format_errors(exc.errors())}
        ).model_dump()
    )




app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)





app.include_router(orders.router)
app.include_router(payment.router)
app.include_router(tickets.router)
app.include_router(event.router)





@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=ApiResponse(
                success=False,
                statusCode=status.HTTP_503_SERVICE_UNAVAILABLE,
                message="Database unavailable",
                data={"database": "error"}
            ).model_dump()
        )
    return ApiResponse(success=True, statusCode=status.HTTP_200_OK, message="OK", data={"database": "ok"})
