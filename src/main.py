"""Marketplace Auth API: FastAPI application entry point."""

from fastapi import FastAPI

from src.auth.routes import router as auth_router
from src.config.cors import SecurityHeadersMiddleware, configure_cors
from src.config.logging_config import configure_logging
from src.config.settings import get_settings
from src.middleware.error_handler import register_error_handlers
from src.middleware.rate_limiter import RateLimiterMiddleware
from src.middleware.request_id import RequestIDMiddleware

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Marketplace Auth API",
    description=(
        "Authentication and authorization for the services marketplace.\n\n"
        "## Features\n"
        "- Service provider signup with email verification\n"
        "- JWT access tokens and single-use rotating refresh tokens\n"
        "- Role-based route gating (admin, service_provider, customer)\n"
        "- Password reset and admin-issued magic login links\n\n"
        "## Authentication\n"
        "Protected endpoints require `Authorization: Bearer <access token>`."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Auth", "description": "Signup, signin, token rotation, password and magic-link flows"},
    ],
)

# --- Middleware (order matters: last added is outermost) ---
app.add_middleware(RateLimiterMiddleware, limit=settings.RATE_LIMIT_AUTH, window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS)
configure_cors(app)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)

# --- Error handlers ---
register_error_handlers(app)

# --- Routes ---
app.include_router(auth_router)


@app.get("/health", tags=["Health"], summary="Health check", description="Returns OK if the service is running.")
async def health_check():
    return {"status": "ok"}
