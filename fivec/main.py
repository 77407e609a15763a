"""Main FastAPI application for the 5C Community Group Orchestrator."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fivec.api.groups import router as groups_router
from fivec.api.health import router as health_router
from fivec.api.matching import router as matching_router
from fivec.api.sms import router as sms_router
from fivec.config import get_settings
from fivec.core.exceptions import FiveCError, get_user_friendly_error_message
from fivec.core.logging import get_logger, setup_logging
from fivec.core.middleware import CorrelationIDMiddleware

settings = get_settings()

# Initialize logging
setup_logging(settings.log_level)
logger = get_logger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Scores group health and orchestrates matching, approval and notifications",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(CorrelationIDMiddleware)

app.include_router(health_router, prefix=settings.api_prefix, tags=["health"])
app.include_router(groups_router, prefix=settings.api_prefix)
app.include_router(sms_router, prefix=settings.api_prefix)
app.include_router(matching_router, prefix=settings.api_prefix)


@app.exception_handler(FiveCError)
async def five_c_error_handler(request: Request, exc: FiveCError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    logger.warning(
        "Request failed with domain error",
        path=request.url.path,
        error_code=exc.error_code,
        error=exc.detail,
    )
    content = exc.to_dict()
    content["user_message"] = get_user_friendly_error_message(exc.error_code)
    return JSONResponse(status_code=exc.http_status, content=content)


@app.on_event("startup")
async def startup_event():
    logger.info(
        "Starting 5C orchestrator",
        version=settings.version,
        environment=settings.environment,
        sms_configured=settings.twilio_configured,
        email_configured=settings.resend_configured,
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down 5C orchestrator")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fivec.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
