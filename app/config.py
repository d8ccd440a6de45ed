import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tripsplit.db")

# Handle Render's postgres:// -> postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")]
SENTRY_DSN = os.getenv("SENTRY_DSN")

AUTH_PROVIDER = os.getenv("AUTH_PROVIDER", "jwt")
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET", "dev-secret-change-me")
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")

RECEIPT_PROVIDER = os.getenv("RECEIPT_PROVIDER", "openai")

RESEND_API_KEY = os.getenv("RESEND_API_KEY")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Balances within this many minor units of zero count as settled
SETTLEMENT_EPSILON = int(Decimal(os.getenv("SETTLEMENT_EPSILON", "1")))
