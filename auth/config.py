"""Authentication and edge-guard configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Durations are in hours to keep configuration intuitive.
    """

    # Session settings
    session_expiry_hours: int = Field(
        default=720,  # 30 days
        description="Session lifetime in hours",
        ge=1,
        le=2160,
    )
    session_extend_on_activity: bool = Field(
        default=True,
        description="Whether to extend session expiry on activity",
    )

    # Accounts
    password_min_length: int = Field(
        default=6,
        description="Minimum password length for upgraded accounts",
        ge=6,
        le=128,
    )
    default_role: str = Field(
        default="customer",
        description="Role stamped onto customer sessions",
    )

    # Identity normalization
    default_country_code: str = Field(
        default="91",
        description="Country code prepended to bare 10-digit phone numbers",
        pattern=r"^[0-9]{1,3}$",
    )

    # Cookies
    cookie_secure: bool = Field(
        default=True,
        description="Mark the session cookie Secure (disable only for local HTTP)",
    )


class RateLimitPolicy(BaseModel):
    """Fixed-window allowance for one route."""

    window_ms: int = Field(default=60000, ge=1000)
    max_requests: int = Field(default=50, ge=1)


def _default_route_policies() -> dict[str, RateLimitPolicy]:
    return {
        "/api/bookings": RateLimitPolicy(window_ms=60000, max_requests=10),
        "/api/availability": RateLimitPolicy(window_ms=60000, max_requests=30),
        "/api/shops": RateLimitPolicy(window_ms=60000, max_requests=100),
        "/api/services": RateLimitPolicy(window_ms=60000, max_requests=100),
        "/api/upload": RateLimitPolicy(window_ms=60000, max_requests=5),
        "/api/claim-customer": RateLimitPolicy(window_ms=60000, max_requests=10),
        "/api/customers/claim": RateLimitPolicy(window_ms=60000, max_requests=10),
        "/api/auth/upgrade": RateLimitPolicy(window_ms=60000, max_requests=10),
    }


class RateLimitConfig(BaseModel):
    """
    Per-route request budgets.

    Routes match on the exact request path; anything unlisted uses the
    default policy.
    """

    routes: dict[str, RateLimitPolicy] = Field(default_factory=_default_route_policies)
    default: RateLimitPolicy = Field(default_factory=RateLimitPolicy)
    backend: str = Field(
        default="memory",
        description="'memory' (single instance) or 'valkey' (shared across instances)",
        pattern="^(memory|valkey)$",
    )
    sweep_every: int = Field(
        default=1000,
        description="In-memory backend: drop expired windows every N hits",
        ge=1,
    )

    def policy_for(self, path: str) -> RateLimitPolicy:
        return self.routes.get(path, self.default)
