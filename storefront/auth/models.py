"""
Auth schemas.

Wire shapes returned by the storefront API (`user`, `session`) and the
snapshot held by the AuthStore.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

DEFAULT_USER_NAME = "User"


class AuthStatus(str, Enum):
    """Auth state machine states."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"  # sign-in, sign-up or recovery in flight
    AUTHENTICATED = "authenticated"


class AuthSession(BaseModel):
    """Provider session tokens."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["AuthSession"]:
        """Parse `session` from an API body; None when absent or tokenless."""
        if not isinstance(payload, dict) or not payload.get("access_token"):
            return None
        return cls.model_validate(payload)


def _email_local_part(email: str) -> str:
    return email.split("@", 1)[0] if email else ""


class SessionUser(BaseModel):
    """The signed-in customer as the UI sees it."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str = ""
    whatsapp: str = ""

    @classmethod
    def from_auth_user(
        cls,
        auth_user: dict[str, Any],
        profile: Optional[dict[str, Any]] = None,
    ) -> "SessionUser":
        """
        Build from a provider user object and an optional profile row.

        Name precedence: profile name -> email local part -> "User".
        """
        email = auth_user.get("email") or ""
        profile = profile or {}
        return cls(
            id=str(auth_user["id"]),
            name=profile.get("name") or _email_local_part(email) or DEFAULT_USER_NAME,
            email=email,
            whatsapp=profile.get("whatsapp") or "",
        )


@dataclass(frozen=True)
class AuthSnapshot:
    """
    Immutable auth state. `is_authenticated` is derived from `user`, so
    the two can never disagree.
    """
    user: Optional[SessionUser] = None
    status: AuthStatus = AuthStatus.UNAUTHENTICATED
    requires_verification: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


@dataclass(frozen=True)
class AuthResult:
    """Decoded response of signin/signup/verify-otp."""
    user: dict[str, Any]
    session: Optional[AuthSession] = None
