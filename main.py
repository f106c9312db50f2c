"""
Application factory for the salon booking identity service.

Run with:
    uvicorn main:build_app --factory
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from api.base import request_id_of, success_response
from api.cors import get_allowed_origins
from api.bookings import create_bookings_router
from api.customers import create_customers_router
from api.errors import register_error_handlers
from api.middleware import EdgeGuardMiddleware, RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig, RateLimitConfig
from auth.database import AuthDatabase
from auth.rate_limiter import RateLimiter, create_rate_limiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import get_database_url, get_service_database_url, get_valkey_url
from core.repositories import BookingRepository, CustomerRepository
from core.services.booking_service import BookingService
from core.services.claim_service import ClaimService
from core.services.customer_lookup import CustomerLookup
from core.services.customer_service import CustomerService

logger = logging.getLogger(__name__)


def create_app(
    auth_service: AuthService,
    claim_service: ClaimService,
    customer_service: CustomerService,
    booking_service: BookingService,
    rate_limiter: RateLimiter,
    allowed_origins: list[str] | None = None,
    security_logger: SecurityLogger | None = None,
    auth_config: AuthConfig | None = None,
    lifespan=None,
) -> FastAPI:
    """
    Assemble the app from ready services.

    Middleware runs outermost first: request ID, edge guard (preflight,
    rate limit, headers), then session resolution.
    """
    auth_config = auth_config or AuthConfig()
    app = FastAPI(title="Salon Booking Identity API", version="1.0.0", lifespan=lifespan)

    register_error_handlers(app)

    app.include_router(
        create_auth_router(auth_service, customer_service, cookie_secure=auth_config.cookie_secure),
        prefix="/api/auth",
    )
    app.include_router(create_customers_router(claim_service, customer_service), prefix="/api")
    app.include_router(create_bookings_router(booking_service), prefix="/api")

    @app.get("/health")
    async def health(request: Request):
        return success_response({"status": "ok"}, request_id=request_id_of(request))

    # Starlette wraps in reverse order of registration
    app.add_middleware(AuthMiddleware, auth_service=auth_service)
    app.add_middleware(
        EdgeGuardMiddleware,
        rate_limiter=rate_limiter,
        allowed_origins=allowed_origins or get_allowed_origins(),
        security_logger=security_logger,
    )
    app.add_middleware(RequestIDMiddleware)

    return app


def build_app() -> FastAPI:
    """Wire real clients from the environment and Vault."""
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    auth_config = AuthConfig(
        cookie_secure=os.getenv("COOKIE_SECURE", "true").lower() == "true",
    )
    rate_limit_config = RateLimitConfig(backend=os.getenv("RATE_LIMIT_BACKEND", "memory"))

    restricted_db = PostgresClient(get_database_url(), label="restricted")
    elevated_db = PostgresClient(get_service_database_url(), label="elevated")
    valkey = ValkeyClient(get_valkey_url())

    security_logger = SecurityLogger(elevated_db)
    auth_service = AuthService(
        config=auth_config,
        auth_db=AuthDatabase(elevated_db),
        session_manager=SessionManager(valkey, auth_config),
        security_logger=security_logger,
    )

    country_code = auth_config.default_country_code
    public_repository = CustomerRepository(restricted_db)
    lookup = CustomerLookup(public_repository, country_code)
    # Claims and profile creation act on guest-created rows RLS hides from the caller
    owner_repository = CustomerRepository(elevated_db)
    customer_service = CustomerService(owner_repository, lookup, country_code)
    claim_service = ClaimService(owner_repository, security_logger, country_code)
    booking_service = BookingService(BookingRepository(elevated_db), customer_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        yield
        logger.info("Application shutting down...")
        PostgresClient.close_all_pools()
        valkey.close()

    return create_app(
        auth_service=auth_service,
        claim_service=claim_service,
        customer_service=customer_service,
        booking_service=booking_service,
        rate_limiter=create_rate_limiter(rate_limit_config, valkey),
        allowed_origins=get_allowed_origins(),
        security_logger=security_logger,
        auth_config=auth_config,
        lifespan=lifespan,
    )
