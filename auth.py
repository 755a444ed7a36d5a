import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

from flask import request
from jose import ExpiredSignatureError, JWTError, jwt

from context import current_context
from errors import Unauthenticated
from models import db, User

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'


# ---------------------- Token Service ----------------------
class AuthError(Exception):
    pass


class MalformedToken(AuthError):
    """The token verified but carries no usable user identifier."""


class InvalidToken(AuthError):
    """Bad signature, expired, or not a JWT at all."""


class TokenService:
    def __init__(self, secret, lifetime=timedelta(days=30)):
        self.secret = secret
        self.lifetime = lifetime

    def issue(self, user_id, now=None):
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            'id': user_id,
            'iat': issued_at,
            'exp': issued_at + self.lifetime,
        }
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def verify(self, token):
        try:
            payload = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError as exc:
            raise InvalidToken('token expired') from exc
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        user_id = payload.get('id')
        if user_id is None or isinstance(user_id, bool):
            raise MalformedToken('payload has no user id')
        if isinstance(user_id, float) and not user_id.is_integer():
            raise MalformedToken(f'unusable user id {user_id!r}')
        try:
            return int(user_id)
        except (TypeError, ValueError) as exc:
            raise MalformedToken(f'unusable user id {user_id!r}') from exc


# ---------------------- Authorization Gate ----------------------
def bearer_token(header):
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        return None
    return parts[1]


def authenticate(header, tokens, session):
    """Resolve the Authorization header to a User or raise Unauthenticated."""
    token = bearer_token(header)
    if not token:
        raise Unauthenticated('no token')
    try:
        user_id = tokens.verify(token)
    except AuthError as exc:
        raise Unauthenticated(f'invalid token: {exc}') from exc
    user = session.get(User, user_id)
    if user is None:
        raise Unauthenticated(f'user {user_id} not found')
    return user


def auth_required(view_func):
    """Run the gate and hand the resolved user to the view as its first argument."""
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        try:
            user = authenticate(request.headers.get('Authorization'), current_context().tokens, db.session)
        except Unauthenticated as exc:
            logger.info('Rejected %s %s: %s', request.method, request.path, exc.reason)
            raise
        return view_func(user, *args, **kwargs)
    return wrapped
