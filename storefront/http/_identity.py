"""
Identity — who is calling.

Authentication itself happens upstream (gateway, auth middleware); this layer
only reads the identity it left on the request.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol

from fastapi import Request

from kungfu import Result, Ok, Error


class AuthErrorKind(Enum):
    UNAUTHENTICATED = auto()  # No identity on the request


@dataclass(frozen=True, slots=True)
class Unauthenticated:
    message: str = "Authentication required"

    @property
    def kind(self) -> AuthErrorKind:
        return AuthErrorKind.UNAUTHENTICATED


class IdentityResolver(Protocol):
    def resolve(self, request: Request) -> Result[str, Unauthenticated]: ...


class HeaderIdentityResolver:
    """Reads the user id from a trusted header, `X-User-Id` by default."""

    def __init__(self, header: str = "x-user-id") -> None:
        self._header = header.lower()

    def resolve(self, request: Request) -> Result[str, Unauthenticated]:
        user_id = request.headers.get(self._header, "").strip()
        if not user_id:
            return Error(Unauthenticated())
        return Ok(user_id)


__all__ = (
    "AuthErrorKind",
    "Unauthenticated",
    "IdentityResolver",
    "HeaderIdentityResolver",
)
