import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from restaurant_orders.exceptions import OrderCoreError
from restaurant_orders.utils.clock import utcnow

logger = logging.getLogger(__name__)


async def order_core_error_handler(request: Request, exc: OrderCoreError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        "Request rejected",
        extra={
            "request_id": request_id,
            "error": exc.code,
            "reason": exc.message,
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(
            {
                "success": False,
                "error": exc.code,
                "message": exc.message,
                "details": exc.details,
                "retryable": exc.retryable,
                "timestamp": utcnow().isoformat() + "Z",
            }
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderCoreError, order_core_error_handler)
