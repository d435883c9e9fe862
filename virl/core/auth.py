"""Session JWT authentication for FastAPI.

Tokens are issued by the managed auth service and signed with its shared
HS256 secret. `sub` is the account id; admins carry
`app_metadata.role == "admin"`.
"""

from dataclasses import dataclass

import jwt as pyjwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from virl.core.config import get_settings
from virl.core.dependencies import get_usage_store
from virl.quota.store import UsageStore

_bearer_scheme = HTTPBearer(auto_error=False)

# In-memory cache of provisioned account IDs to avoid DB queries on every request
_provisioned_cache: set[str] = set()


@dataclass(frozen=True)
class AuthUser:
    """Authenticated account extracted from a session JWT."""

    user_id: str
    claims: dict


def decode_session_jwt(token: str) -> AuthUser:
    """Verify and decode a session JWT.

    Raises ``HTTPException(401)`` on any validation failure.
    """
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="Authentication is misconfigured")

    options = {
        "verify_exp": True,
        "verify_iat": True,
        "verify_aud": bool(settings.jwt_audience),
        "require": ["sub", "exp", "iat"],
    }

    try:
        payload = pyjwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.MissingRequiredClaimError as exc:
        raise HTTPException(status_code=401, detail=f"Missing required claim: {exc}")
    except pyjwt.InvalidAudienceError:
        raise HTTPException(status_code=401, detail="Unauthorized audience (aud mismatch)")
    except pyjwt.InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing sub claim")

    return AuthUser(user_id=sub, claims=payload)


def is_admin_user(user: AuthUser) -> bool:
    """JWT-only admin check (no database lookup)."""
    app_metadata = user.claims.get("app_metadata") or {}
    return app_metadata.get("role") == "admin"


async def require_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    store: UsageStore = Depends(get_usage_store),
) -> AuthUser:
    """FastAPI dependency that extracts and validates the session JWT.

    Also provisions a starter workspace the first time an account is seen.

    Usage::

        @router.get("/protected")
        async def protected(user: AuthUser = Depends(require_auth)):
            ...
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    user = decode_session_jwt(credentials.credentials)

    if user.user_id not in _provisioned_cache:
        from virl.core.provisioning import provision_account_on_first_login

        await provision_account_on_first_login(user.user_id, user.claims, store)
        _provisioned_cache.add(user.user_id)

    # Set user_id on request state for downstream use (error handlers)
    request.state.user_id = user.user_id

    return user


async def require_admin(user: AuthUser = Depends(require_auth)) -> AuthUser:
    """FastAPI dependency that requires admin privileges."""
    if is_admin_user(user):
        return user
    raise HTTPException(status_code=403, detail="Admin access required")
