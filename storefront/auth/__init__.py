"""Authentication package."""
from .models import AuthResult, AuthSession, AuthSnapshot, AuthStatus, SessionUser
from .service import AuthService
from .session_cache import SessionCache, SupabaseSessionCache
from .storage import (
    SESSION_TOKEN_KEY,
    FileTokenStorage,
    MemoryTokenStorage,
    TokenStorage,
    create_token_storage,
)
from .store import AuthStore

__all__ = [
    "AuthResult",
    "AuthSession",
    "AuthSnapshot",
    "AuthStatus",
    "SessionUser",
    "AuthService",
    "AuthStore",
    "SessionCache",
    "SupabaseSessionCache",
    "SESSION_TOKEN_KEY",
    "TokenStorage",
    "MemoryTokenStorage",
    "FileTokenStorage",
    "create_token_storage",
]
