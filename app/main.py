import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.auth.factory import get_token_verifier
from app.config import CORS_ORIGINS, SENTRY_DSN
from app.database import engine, Base
from app.errors import TripSplitError
from app.logging_config import setup_logging
from app.middleware import AuthMiddleware, RequestLoggingMiddleware
from app.ratelimit import limiter
from app.routes import activity, balances, exchange, members, receipts, settlements, spends, trips, users

# Sentry
if SENTRY_DSN:
    # Disable the auto-detected OpenAI Agents integration due to
    # version incompatibility (sentry-sdk expects a different internal API)
    _disabled = []
    try:
        from sentry_sdk.integrations.openai_agents import OpenAIAgentsIntegration
        _disabled.append(OpenAIAgentsIntegration)
    except ImportError:
        pass
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        traces_sample_rate=0.1,
        send_default_pii=False,
        disabled_integrations=_disabled,
    )

logger = setup_logging()

app = FastAPI(title="Tripsplit API", version="0.1.0")
app.state.limiter = limiter
app.state.token_verifier = get_token_verifier()
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TripSplitError)
def handle_domain_error(request: Request, exc: TripSplitError):
    logger.info(
        f"Rejected: {exc.kind}",
        extra={"extra_data": {"path": request.url.path, "kind": exc.kind}},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.message})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(AuthMiddleware)

# Create tables (use Alembic in production)
Base.metadata.create_all(bind=engine)

# Routes
app.include_router(trips.router, prefix="/api")
app.include_router(members.router, prefix="/api")
app.include_router(spends.router, prefix="/api")
app.include_router(balances.router, prefix="/api")
app.include_router(settlements.router, prefix="/api")
app.include_router(receipts.router, prefix="/api")
app.include_router(exchange.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(activity.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
