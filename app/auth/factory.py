from app.auth.base import TokenVerifier
from app.auth.jwt_provider import JWTTokenVerifier
from app.config import AUTH_PROVIDER


def get_token_verifier() -> TokenVerifier:
    """Return the configured identity token verifier."""
    if AUTH_PROVIDER == "jwt":
        return JWTTokenVerifier()
    raise ValueError(f"Unknown auth provider: {AUTH_PROVIDER}")
