"""
Auth Session Store - current user and the session-recovery state machine.

    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED
           ^                                 |
           +------ logout / failed recovery -+

Every collaborator call is time-boxed so no public method hangs on a
silent backend. `recover_session` and `logout` never raise; sign-in,
sign-up and OTP verification propagate errors for the UI to display.

Background work (profile enrichment after recovery, session-cache sync,
post-signup profile updates) runs in detached tasks. Their failures are
logged and never reach the caller; do not await them from UI code.
"""

import asyncio
from collections.abc import Coroutine
from dataclasses import replace
from typing import Any, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from storefront.errors import ValidationError
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.store import Store
from storefront.utils.timeouts import time_boxed
from storefront.utils.validation import require_credentials

from .models import AuthResult, AuthSession, AuthSnapshot, AuthStatus, SessionUser
from .service import AuthService
from .session_cache import SessionCache
from .storage import SESSION_TOKEN_KEY, MemoryTokenStorage, TokenStorage

logger = get_logger(__name__)

DEFAULT_STEP_TIMEOUT = 2.5
DEFAULT_PROFILE_TIMEOUT = 2.5
DEFAULT_SESSION_SYNC_TIMEOUT = 1.0
PROFILE_SYNC_ATTEMPTS = 5


class AuthStore(Store[AuthSnapshot]):
    """Sole writer of the current user. Create one per application root."""

    def __init__(
        self,
        service: AuthService,
        token_storage: Optional[TokenStorage] = None,
        session_cache: Optional[SessionCache] = None,
        step_timeout: float = DEFAULT_STEP_TIMEOUT,
        profile_timeout: float = DEFAULT_PROFILE_TIMEOUT,
        session_sync_timeout: float = DEFAULT_SESSION_SYNC_TIMEOUT,
        profile_sync_delay: float = 0.5,
    ):
        super().__init__(AuthSnapshot())
        self.service = service
        self.token_storage = token_storage if token_storage is not None else MemoryTokenStorage()
        self.session_cache = session_cache
        self.step_timeout = step_timeout
        self.profile_timeout = profile_timeout
        self.session_sync_timeout = session_sync_timeout
        self.profile_sync_delay = profile_sync_delay

        self._recovering = False
        self._in_flight = 0
        self._logout_count = 0
        self._background: set[asyncio.Task] = set()

    # ---- state ----

    @property
    def user(self) -> Optional[SessionUser]:
        return self.get_state().user

    @property
    def is_authenticated(self) -> bool:
        return self.get_state().is_authenticated

    def _commit(self, user: Optional[SessionUser], requires_verification: bool = False) -> None:
        """Set user and status together."""
        status = AuthStatus.AUTHENTICATED if user else AuthStatus.UNAUTHENTICATED
        if user is None and self._in_flight:
            status = AuthStatus.AUTHENTICATING
        self._set_state(AuthSnapshot(user=user, status=status, requires_verification=requires_verification))

    def _begin(self) -> None:
        self._in_flight += 1
        self._set_state(replace(self.get_state(), status=AuthStatus.AUTHENTICATING))

    def _settle(self) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        if self._in_flight:
            return
        state = self.get_state()
        status = AuthStatus.AUTHENTICATED if state.user else AuthStatus.UNAUTHENTICATED
        self._set_state(replace(state, status=status))

    # ---- token persistence (best-effort) ----

    def _read_token(self) -> Optional[str]:
        try:
            return self.token_storage.get(SESSION_TOKEN_KEY)
        except Exception as e:
            logger.warning(f"Could not read stored session token: {e}")
            return None

    def _persist_token(self, token: str) -> None:
        try:
            self.token_storage.set(SESSION_TOKEN_KEY, token)
        except Exception as e:
            # Session still works for this process
            logger.warning(f"Could not persist session token: {e}")

    def _remove_token(self) -> None:
        try:
            self.token_storage.remove(SESSION_TOKEN_KEY)
        except Exception as e:
            logger.warning(f"Could not remove stored session token: {e}")

    # ---- background tasks ----

    def _spawn(self, coro: Coroutine[Any, Any, None], label: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"auth:{label}")
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Background task {task.get_name()} failed: {error}")

    async def wait_for_background_tasks(self) -> None:
        """Await detached tasks (shutdown and tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ---- collaborators, time-boxed ----

    async def _fetch_profile(self, user_id: str) -> Optional[dict]:
        try:
            return await time_boxed(self.service.get_profile(user_id), self.profile_timeout, "profile fetch")
        except Exception as e:
            logger.warning(f"Profile fetch failed for {sanitize_id_for_logging(user_id)}, using basic user info: {e}")
            return None

    async def _sync_session_cache(self, session: AuthSession) -> None:
        if self.session_cache is None:
            return
        try:
            await time_boxed(self.session_cache.set_session(session), self.session_sync_timeout, "session cache sync")
        except Exception as e:
            logger.info(f"Session not set in session cache (non-fatal): {e}")

    async def _establish(self, result: AuthResult, logouts: int, overrides: Optional[dict] = None) -> SessionUser:
        """
        Persist the session and set the user from the profile or the auth payload.

        Nothing is stored when a logout happened after `logouts` was read;
        the user is still returned to the caller.
        """
        profile = await self._fetch_profile(str(result.user["id"]))
        user = SessionUser.from_auth_user(result.user, {**(profile or {}), **(overrides or {})})

        if self._logout_count != logouts:
            logger.info(f"Logout during sign-in of {sanitize_id_for_logging(user.id)}, session discarded")
            return user

        if result.session is not None:
            self._persist_token(result.session.access_token)
            self._spawn(self._sync_session_cache(result.session), "session-cache-sync")
        self._commit(user)
        logger.info(f"User {sanitize_id_for_logging(user.id)} authenticated")
        return user

    # ---- explicit actions ----

    async def sign_in(self, email: str, password: str) -> SessionUser:
        """
        Sign in with email and password.

        Raises:
            ValidationError: empty or malformed input (no request made)
            AuthError: credentials rejected
            NetworkError: API unreachable
        """
        email = require_credentials(email, password)
        logouts = self._logout_count
        self._begin()
        try:
            result = await self.service.sign_in(email, password)
            return await self._establish(result, logouts)
        finally:
            self._settle()

    async def sign_up(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        whatsapp: Optional[str] = None,
    ) -> SessionUser:
        """
        Create an account.

        The store authenticates only when the API returns a session. When
        email verification is required it stays unauthenticated and sets
        `requires_verification` on the snapshot.
        """
        email = require_credentials(email, password, check_strength=True)
        overrides = {key: value for key, value in (("name", name), ("whatsapp", whatsapp)) if value}

        logouts = self._logout_count
        self._begin()
        try:
            result = await self.service.sign_up(email, password, name=name, whatsapp=whatsapp)
            if result.session is None:
                logger.info(f"Sign-up for {sanitize_id_for_logging(result.user.get('id'))} awaits email verification")
                self._commit(self.user, requires_verification=True)
                return SessionUser.from_auth_user(result.user, overrides)

            user = await self._establish(result, logouts, overrides)
            if overrides and self._logout_count == logouts:
                self._spawn(self._sync_signup_profile(user.id, user.email, overrides), "signup-profile-sync")
            return user
        finally:
            self._settle()

    async def verify_otp(self, email: str, token: str, otp_type: str = "signup") -> SessionUser:
        """Confirm an emailed one-time code and authenticate."""
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required", field="email")
        if not (token or "").strip():
            raise ValidationError("Verification code is required", field="token")

        logouts = self._logout_count
        self._begin()
        try:
            result = await self.service.verify_otp(email, token.strip(), otp_type)
            return await self._establish(result, logouts)
        finally:
            self._settle()

    async def _sync_signup_profile(self, user_id: str, email: str, updates: dict) -> None:
        """Push sign-up fields once the database trigger has created the profile row."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(PROFILE_SYNC_ATTEMPTS),
                wait=wait_exponential(multiplier=self.profile_sync_delay, max=8),
                reraise=True,
            ):
                with attempt:
                    await self.service.update_profile(user_id, updates, email=email)
            logger.info(f"Profile {sanitize_id_for_logging(user_id)} updated after sign-up")
        except Exception as e:
            logger.warning(f"Profile update after sign-up failed for {sanitize_id_for_logging(user_id)}: {e}")

    async def logout(self) -> None:
        """Clear local auth state. Never raises; remote invalidation is best-effort."""
        self._logout_count += 1
        token = self._read_token()
        self._remove_token()
        try:
            if token:
                await time_boxed(self.service.sign_out(token), self.step_timeout, "remote sign-out")
            if self.session_cache is not None:
                await time_boxed(self.session_cache.sign_out(), self.step_timeout, "session cache sign-out")
        except Exception as e:
            logger.warning(f"Logout error (local state cleared anyway): {e}")
        finally:
            self._commit(None)
            logger.info("User logged out")

    # ---- startup recovery ----

    async def recover_session(self) -> None:
        """
        Re-establish the user at startup. Never raises.

        Concurrent calls while one is running return immediately, and a
        store that already has a user is left untouched. A result that
        arrives after a logout is discarded. Steps:
        stored token lookup -> session cache -> stay unauthenticated.
        """
        if self._recovering:
            logger.debug("Session recovery already in progress, skipping")
            return
        if self.user is not None:
            logger.debug(f"Skipping recovery, user {sanitize_id_for_logging(self.user.id)} already set")
            return

        self._recovering = True
        self._begin()
        try:
            if await self._recover_from_token():
                return
            if await self._recover_from_session_cache():
                return
            logger.info("No session found, user not authenticated")
        except Exception:
            logger.exception("Session recovery failed")
        finally:
            self._recovering = False
            self._settle()

    async def _recover_from_token(self) -> bool:
        token = self._read_token()
        if not token:
            return False
        logouts = self._logout_count

        try:
            result = await time_boxed(self.service.lookup_session(token), self.step_timeout, "session lookup")
        except Exception as e:
            logger.warning(f"Backend session check failed (non-fatal), trying session cache: {e}")
            return False

        if result is None:
            logger.info("No backend session for stored token, trying session cache")
            return False

        if self.user is not None:
            # An explicit sign-in finished first
            return True
        if self._logout_count != logouts:
            logger.info("Logout during session lookup, discarding recovered session")
            return True

        if result.session is not None:
            self._persist_token(result.session.access_token)

        user = SessionUser.from_auth_user(result.user)
        self._commit(user)
        logger.info(f"Session recovered from stored token for {sanitize_id_for_logging(user.id)}")

        self._spawn(self._enrich_recovered(user, result.session), "recovery-enrichment")
        return True

    async def _enrich_recovered(self, user: SessionUser, session: Optional[AuthSession]) -> None:
        profile = await self._fetch_profile(user.id)
        current = self.user
        if profile and current is not None and current.id == user.id:
            self._commit(SessionUser.from_auth_user({"id": user.id, "email": user.email}, profile))
        if session is not None:
            await self._sync_session_cache(session)

    async def _recover_from_session_cache(self) -> bool:
        if self.session_cache is None:
            return False
        logouts = self._logout_count

        try:
            result = await time_boxed(self.session_cache.get_session(), self.step_timeout, "cached session")
        except Exception as e:
            logger.warning(f"Session cache lookup failed: {e}")
            return False

        if result is None:
            return False

        profile = await self._fetch_profile(str(result.user["id"]))
        if self.user is not None or self._logout_count != logouts:
            return True

        if result.session is not None:
            self._persist_token(result.session.access_token)
        user = SessionUser.from_auth_user(result.user, profile)
        self._commit(user)
        logger.info(f"Session recovered from session cache for {sanitize_id_for_logging(user.id)}")
        return True
