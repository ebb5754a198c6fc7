# utils/auth.py
from functools import wraps

from flask import abort, current_app
from flask_login import current_user
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

TOKEN_SALT = "procurement-api-token"


def roles_required(*roles):
    def deco(fn):
        @wraps(fn)
        def inner(*a, **kw):
            if not current_user.is_authenticated:
                abort(401)
            if not current_user.has_role(*roles):
                abort(403)
            return fn(*a, **kw)

        return inner

    return deco


def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(user) -> str:
    return _serializer().dumps({"uid": user.id, "tid": user.tenant_id})


def read_token(token: str):
    """Return the token payload, or None when it is forged or expired."""
    max_age = int(current_app.config.get("TOKEN_MAX_AGE", 8 * 3600))
    try:
        return _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("expired bearer token")
        return None
    except BadSignature:
        return None


def bearer_token(req):
    header = req.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()
