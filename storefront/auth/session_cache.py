"""Local session-caching layer backed by the Supabase auth client."""
from typing import Optional, Protocol

from supabase._async.client import AsyncClient

from .models import AuthResult, AuthSession


class SessionCache(Protocol):
    async def get_session(self) -> Optional[AuthResult]: ...

    async def set_session(self, session: AuthSession) -> None: ...

    async def sign_out(self) -> None: ...


class SupabaseSessionCache:
    """Adapter over `AsyncClient.auth` (gotrue)."""

    def __init__(self, client: AsyncClient):
        self.client = client

    async def get_session(self) -> Optional[AuthResult]:
        session = await self.client.auth.get_session()
        if session is None or session.user is None:
            return None
        return AuthResult(
            user={"id": session.user.id, "email": session.user.email or ""},
            session=AuthSession(
                access_token=session.access_token,
                refresh_token=session.refresh_token,
                expires_at=session.expires_at,
            ),
        )

    async def set_session(self, session: AuthSession) -> None:
        if not session.refresh_token:
            return
        await self.client.auth.set_session(session.access_token, session.refresh_token)

    async def sign_out(self) -> None:
        await self.client.auth.sign_out()
