import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import Settings
from app.database import init_db
from app.rate_limit import limiter, rate_limit_exceeded_handler
from app.auth.router import router as auth_router
from app.notifications.client import NotificationClient, Notifier
from app.profile.router import router as profile_router
from shared.middleware.request_id import request_id_middleware
from shared.middleware.error_handler import error_envelope_middleware, register_exception_handlers

# Make delivery-failure and lockout warnings visible under uvicorn
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## LearnHub Identity Service

Owns user credentials for the LearnHub platform:

* **Registration** — first name, last name, email and password. The account starts
  unverified and a 6-digit code (valid 10 minutes) is emailed via the notification service.
* **Email verification** — submitting the code verifies the account and returns a
  session token. Requesting a new code invalidates the previous one.
* **Login** — email + password, 7-day session token. Five consecutive failed passwords
  lock the account for two hours.
* **Profile** — view and update your own name.

### Authentication
Protected endpoints require:
```
Authorization: Bearer <token>
```
The token is re-checked against the account on every request: deleting or un-verifying
an account invalidates its outstanding tokens.

### Error shape
All errors return a consistent JSON envelope:
```json
{ "error": { "code": "otp_expired", "message": "Human-readable message" }, "request_id": "..." }
```
Validation errors (`400`) add a per-field map under `error.fields`.
"""

_TAGS_METADATA = [
    {
        "name": "auth",
        "description": (
            "Registration, email OTP verification and resend, email+password login, "
            "current user and logout."
        ),
    },
    {
        "name": "profile",
        "description": "View and update the authenticated user's own profile.",
    },
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── App factory ───────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(app.state.settings.identity_database_url)
    yield
    await app.state.notifier.aclose()


def create_app(
    settings: Settings | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """
    Build the identity app.

    Settings (including the token signing secret) are read exactly once here
    and handed to routes through app.state; pass ``notifier`` to replace the
    HTTP notification client (tests, local tooling).
    """
    settings = settings or Settings()
    app = FastAPI(
        title="LearnHub Identity Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.notifier = notifier or NotificationClient.from_settings(settings)

    # Attach rate limiter state before middleware
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    register_exception_handlers(app)

    # Middleware is applied in reverse-registration order (last added = outermost).
    # CORS must be outermost so ALL responses (including 429s) carry CORS headers.
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(profile_router, prefix="/api/v1")

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="identity")

    return app


app = create_app()
