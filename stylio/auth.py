"""Token issuance and request authentication."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from .errors import Forbidden, Unauthorized
from .extensions import db
from .models import AuthAccount, User

ACCESS_SALT = "access-token"
REFRESH_SALT = "refresh-token"


def _serializer(salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=salt)


def build_access_token(user: User) -> str:
    return _serializer(ACCESS_SALT).dumps({"user_id": user.user_id, "role": user.role})


def build_refresh_token(user: User) -> str:
    return _serializer(REFRESH_SALT).dumps({"user_id": user.user_id})


def issue_tokens(user: User, account: AuthAccount) -> dict[str, str]:
    """Create a fresh token pair and remember the refresh token on the account.

    The caller commits the session.
    """
    refresh_token = build_refresh_token(user)
    account.refresh_token = refresh_token
    return {"accessToken": build_access_token(user), "refreshToken": refresh_token}


def decode_access_token(token: str) -> dict:
    # Raises SignatureExpired / BadSignature; the error handlers turn those into 401s.
    return _serializer(ACCESS_SALT).loads(token, max_age=current_app.config["ACCESS_TOKEN_MAX_AGE"])


def decode_refresh_token(token: str) -> dict:
    return _serializer(REFRESH_SALT).loads(token, max_age=current_app.config["REFRESH_TOKEN_MAX_AGE"])


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def _load_user(token: str) -> User:
    payload = decode_access_token(token)
    user = db.session.get(User, payload.get("user_id"))
    if user is None:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise Unauthorized("Account is deactivated")
    return user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = bearer_token()
        if token is None:
            raise Unauthorized("Not authorized, no token")
        g.current_user = _load_user(token)
        return view(*args, **kwargs)

    return wrapper


def optional_auth(view):
    """Attach the caller when a valid token is sent; anonymous otherwise."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        g.current_user = None
        token = bearer_token()
        if token is not None:
            try:
                g.current_user = _load_user(token)
            except (BadSignature, Unauthorized) as exc:
                current_app.logger.debug("Ignoring unusable token on %s: %s", request.path, exc)
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: str):
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            if g.current_user.role not in roles:
                raise Forbidden(f"User role '{g.current_user.role}' is not authorized to access this route")
            return view(*args, **kwargs)

        return wrapper

    return decorator


def current_user() -> User | None:
    return g.get("current_user")
