"""
Auth Service - storefront API auth endpoints and Supabase profile rows.

Endpoints:
    POST /api/auth/signin      {email, password}
    POST /api/auth/signup      {email, password, name?, whatsapp?}
    POST /api/auth/verify-otp  {email, token, type}
    GET  /api/auth/session     ?token=  (x-session-token)
    POST /api/auth/signout     (x-session-token)
"""

from typing import Any, Optional

from supabase import PostgrestAPIError
from supabase._async.client import AsyncClient

from storefront.errors import (
    ERROR_INVALID_CREDENTIALS,
    ERROR_NO_USER_RETURNED,
    ERROR_SESSION_INVALID,
    ERROR_SIGN_UP_FAILED,
    ERROR_VERIFICATION_FAILED,
    AuthError,
    ConfigurationError,
    RetryableError,
    normalize_error,
)
from storefront.gateway import Gateway, GatewayResponse
from storefront.logging import get_logger, sanitize_id_for_logging

from .models import AuthResult, AuthSession

logger = get_logger(__name__)

SESSION_TOKEN_HEADER = "x-session-token"
PROFILES_TABLE = "profiles"


def _raise_for_status(response: GatewayResponse, default_message: str) -> None:
    """4xx -> AuthError with the provider's message, 5xx -> RetryableError."""
    if response.ok:
        return

    message = response.error_message(default_message)
    code = response.get("code")
    if response.status_code < 500:
        raise AuthError(message, code=code, status_code=response.status_code)
    raise RetryableError(message, code=code, status_code=response.status_code)


def _parse_result(response: GatewayResponse) -> AuthResult:
    if "text" in (response.data or {}) and not response.get("user"):
        # HTML error page instead of JSON, usually a crashed backend
        raise RetryableError(
            "Server returned a non-JSON response. Check that the API service is running.",
            code="NON_JSON_RESPONSE",
            status_code=response.status_code,
        )

    user = response.get("user")
    if not isinstance(user, dict) or not user.get("id"):
        raise AuthError(ERROR_NO_USER_RETURNED, code="NO_USER", status_code=response.status_code)

    return AuthResult(user=user, session=AuthSession.from_payload(response.get("session")))


class AuthService:
    """Stateless calls against the auth API and the `profiles` table."""

    def __init__(self, gateway: Gateway, supabase: Optional[AsyncClient] = None):
        self.gateway = gateway
        self.supabase = supabase

    async def sign_in(self, email: str, password: str) -> AuthResult:
        response = await self.gateway.call(
            "/api/auth/signin",
            method="POST",
            body={"email": email, "password": password},
        )
        _raise_for_status(response, ERROR_INVALID_CREDENTIALS)
        return _parse_result(response)

    async def sign_up(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        whatsapp: Optional[str] = None,
    ) -> AuthResult:
        body: dict[str, Any] = {"email": email, "password": password}
        if name:
            body["name"] = name
        if whatsapp:
            body["whatsapp"] = whatsapp

        response = await self.gateway.call("/api/auth/signup", method="POST", body=body)
        _raise_for_status(response, ERROR_SIGN_UP_FAILED)
        return _parse_result(response)

    async def verify_otp(self, email: str, token: str, otp_type: str = "signup") -> AuthResult:
        response = await self.gateway.call(
            "/api/auth/verify-otp",
            method="POST",
            body={"email": email, "token": token, "type": otp_type},
        )
        _raise_for_status(response, ERROR_VERIFICATION_FAILED)
        return _parse_result(response)

    async def lookup_session(self, token: str) -> Optional[AuthResult]:
        """
        Ask the API whose session `token` is.

        Returns None when the API answers 401 or omits the session.
        """
        response = await self.gateway.call(
            "/api/auth/session",
            params={"token": token},
            headers={SESSION_TOKEN_HEADER: token},
        )
        if response.status_code == 401:
            return None
        _raise_for_status(response, ERROR_SESSION_INVALID)

        user = response.get("user")
        session = AuthSession.from_payload(response.get("session"))
        if not isinstance(user, dict) or not user.get("id") or session is None:
            return None
        return AuthResult(user=user, session=session)

    async def sign_out(self, token: str) -> None:
        response = await self.gateway.call(
            "/api/auth/signout",
            method="POST",
            headers={SESSION_TOKEN_HEADER: token},
        )
        if not response.ok:
            logger.warning(f"Remote sign-out returned HTTP {response.status_code}")

    def _require_supabase(self) -> AsyncClient:
        if self.supabase is None:
            raise ConfigurationError(
                "Profile access needs a Supabase client. Configure SUPABASE_URL and "
                "SUPABASE_ANON_KEY and pass the client to AuthService.",
                code="SUPABASE_NOT_CONFIGURED",
            )
        return self.supabase

    async def get_profile(self, user_id: str) -> Optional[dict]:
        client = self._require_supabase()
        try:
            result = await (
                client.table(PROFILES_TABLE).select("*").eq("id", user_id).limit(1).execute()
            )
        except PostgrestAPIError as e:
            raise normalize_error(e) from e
        return result.data[0] if result.data else None

    async def update_profile(self, user_id: str, updates: dict[str, Any], email: str = "") -> dict:
        """Update the profile row, creating it when it does not exist yet."""
        client = self._require_supabase()
        try:
            result = await client.table(PROFILES_TABLE).update(updates).eq("id", user_id).execute()
            if result.data:
                return result.data[0]

            logger.info(f"Profile {sanitize_id_for_logging(user_id)} missing, creating it")
            result = await (
                client.table(PROFILES_TABLE)
                .insert({"id": user_id, "email": email, **updates})
                .execute()
            )
        except PostgrestAPIError as e:
            raise normalize_error(e) from e
        return result.data[0] if result.data else {}
