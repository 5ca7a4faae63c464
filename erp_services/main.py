import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from erp_services import __version__
from erp_services.config import Settings
from erp_services.database import Database
from erp_services.exceptions import ERPServiceError
from erp_services.logging_config import configure_logging
from erp_services.routers import (
    auth, chart_of_accounts, employees, events, exchange_rates, finance_rules, invoices, journal_entries,
    materials, milestones, payables, pricing, projects, reports, services_catalog, tasks, tax_rates, templates,
    users, vendor_pricelist, vendors,
)
from erp_services.services.jwt_service import JWTService
from erp_services.services.milestone_service import seed_milestone_templates
from erp_services.services.notification_service import build_notification_service

logger = logging.getLogger(__name__)


def load_environment():
    """Load environment variables from .env file"""
    env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)
        logger.info("Environment variables loaded from %s", env_file)
    elif os.path.exists(os.path.join("..", env_file)):
        load_dotenv(os.path.join("..", env_file))
        logger.info("Environment variables loaded from ../%s", env_file)
    else:
        logger.info("%s file not found. Using system environment variables.", env_file)


SERVICE_ROUTERS = {
    "finance": [
        chart_of_accounts.router,
        journal_entries.router,
        reports.router,
        finance_rules.discount_policies_router,
        finance_rules.overhead_allocations_router,
        finance_rules.pricing_rules_router,
        finance_rules.payment_terms_router,
        exchange_rates.router,
        tax_rates.router,
        invoices.router,
        payables.router,
    ],
    "procurement": [vendors.router, vendor_pricelist.router],
    "engineering": [materials.router, services_catalog.router, pricing.router],
    "project": [projects.router, milestones.router, tasks.router, templates.router, events.router],
    "identity": [auth.router, users.router, employees.router],
}


def error_body(message: str, code: str, details=None) -> dict:
    body = {"success": False, "message": message, "error": code}
    if details:
        body["details"] = details
    return body


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    settings: Settings = app.state.settings
    database: Database = app.state.database
    logger.info("Starting ERP services [%s] on %s:%s", ", ".join(app.state.services), settings.host, settings.port)

    await database.connect()
    if settings.auto_create_tables:
        await database.create_tables()
    if "project" in app.state.services and settings.seed_milestone_templates:
        async with database.session_factory() as session:
            await seed_milestone_templates(session)
    yield
    await database.dispose()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ERPServiceError)
    async def erp_error_handler(request: Request, exc: ERPServiceError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.code, exc.details))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        if location:
            message = f"{location}: {message}"
        logger.info("Validation error on %s %s: %s", request.method, request.url.path, message)
        details = [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg"), "type": error.get("type")}
            for error in errors
        ]
        return JSONResponse(status_code=400, content=error_body(message, "VALIDATION_ERROR", details))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal server error", "INTERNAL_ERROR"))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="ERP Services API",
        description="Finance, procurement, engineering, project and identity services",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = list(settings.enabled_services)
    app.state.database = Database(settings.database_url, echo=settings.database_echo)
    app.state.jwt_service = JWTService(settings)
    app.state.notifications = build_notification_service(
        settings.notification_webhook_url, settings.service_timeout_seconds
    )
    app.state.clock = date.today

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    for service in app.state.services:
        for router in SERVICE_ROUTERS[service]:
            app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Welcome to ERP Services API",
            "version": __version__,
            "services": app.state.services,
            "docs": "/docs",
            "redoc": "/redoc",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "services": app.state.services, "version": __version__}

    return app


load_environment()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("erp_services.main:app", host=app.state.settings.host, port=app.state.settings.port, reload=False)
