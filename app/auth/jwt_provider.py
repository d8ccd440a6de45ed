from jose import JWTError, jwt

from app.auth.base import InvalidToken, VerifiedIdentity
from app.config import AUTH_JWT_ALGORITHM, AUTH_JWT_SECRET


class JWTTokenVerifier:
    """Verifies identity-provider tokens signed with a shared secret."""

    def __init__(self, secret: str = AUTH_JWT_SECRET, algorithm: str = AUTH_JWT_ALGORITHM):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidToken(str(e)) from e

        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            raise InvalidToken("Token has no subject")
        return VerifiedIdentity(uid=uid, email=claims.get("email"), name=claims.get("name"))

    def issue(self, uid: str, email: str | None = None, name: str | None = None) -> str:
        """Mint a token for local development and tests."""
        claims = {"sub": uid}
        if email:
            claims["email"] = email
        if name:
            claims["name"] = name
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)
