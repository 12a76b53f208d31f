"""FastAPI application entrypoint.

Configures logging, Sentry, CORS and the request-validation handler,
includes the reporting routers and exposes a healthcheck endpoint.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .deps import get_settings
from .routers import attribution as attribution_router
from .schemas import ApiFail, HealthResponse
from .telemetry import init_sentry

# Import models so the registry tables are known to Base.metadata
from . import models  # noqa: F401


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same 400 envelope as business validation."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    logger.warning(f"[API] Rejected request to {request.url.path}: {message}")
    return JSONResponse(status_code=400, content=ApiFail(message=message).model_dump())


def create_app() -> FastAPI:
    init_sentry()

    app = FastAPI(
        title="Clickstream Reporting API",
        description="""
        Attribution analysis for clickstream event data.

        Generates warehouse SQL for first-touch, last-touch, linear and
        position-based attribution and renders the result as a dashboard
        visual, either as a disposable preview or as a published sheet.
        """,
        version="1.0.0",
    )

    settings = get_settings()

    allowed_origins = [
        origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",") if origin.strip()
    ]
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health():
        return HealthResponse(status="ok")

    app.include_router(attribution_router.router)

    return app


app = create_app()
