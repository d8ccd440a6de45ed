from typing import Protocol

from pydantic import BaseModel


class VerifiedIdentity(BaseModel):
    uid: str
    email: str | None = None
    name: str | None = None


class InvalidToken(Exception):
    pass


class TokenVerifier(Protocol):
    def verify(self, token: str) -> VerifiedIdentity: ...
