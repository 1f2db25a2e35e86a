import math
from datetime import datetime, timezone

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from instoredealz.api.routes.deals import router as deals_router
from instoredealz.api.routes.health import router as health_router
from instoredealz.api.routes.vendor_pins import router as vendor_pins_router
from instoredealz.core.config import get_settings
from instoredealz.core.logging import configure_logging
from instoredealz.db.storage import StorageUnavailableError
from instoredealz.redemption.errors import RateLimitedError, RedemptionError

logger = structlog.get_logger(__name__)


async def redemption_error_handler(request: Request, exc: RedemptionError) -> JSONResponse:
    content: dict[str, object] = {"success": False, "code": exc.code, "error": exc.message}
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitedError) and exc.next_attempt_at is not None:
        content["nextAttemptAt"] = exc.next_attempt_at.isoformat()
        retry_after = (exc.next_attempt_at - datetime.now(timezone.utc)).total_seconds()
        headers["Retry-After"] = str(max(math.ceil(retry_after), 1))
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def storage_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("storage_unavailable", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "code": "E_INTERNAL", "error": "Internal server error"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "code": "E_INTERNAL", "error": "Internal server error"},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.log_json)

    app = FastAPI(
        title="InStoreDealz Redemption API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_exception_handler(RedemptionError, redemption_error_handler)
    app.add_exception_handler(StorageUnavailableError, storage_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(health_router)
    app.include_router(deals_router)
    app.include_router(vendor_pins_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "instoredealz.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
