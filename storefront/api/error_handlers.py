from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.application.errors import AppError
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)

def _error_body(request: Request, status_code: int, message: str, details=None) -> dict:
    body = {
        "success": False,
        "statusCode": status_code,
        "path": request.url.path,
        "error": message,
    }
    if details is not None:
        body["details"] = details
    return body

def register_error_handlers(app: FastAPI, environment: str) -> None:
    production = environment == "production"

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}", extra={'extra_fields': {'path': request.url.path}})
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(_error_body(request, exc.status_code, exc.message, exc.details)),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content=_error_body(request, 400, "Validation failed", details))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning(f"Integrity error: {exc.orig}")
        message = "Resource conflicts with existing data" if production else str(exc.orig)
        return JSONResponse(status_code=409, content=_error_body(request, 409, message))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        message = "Internal Server Error" if production else str(exc) or "Internal Server Error"
        return JSONResponse(status_code=500, content=_error_body(request, 500, message))
