# Overview: Request decorators for API routes (caller identity, error translation).

from functools import wraps

from flask import current_app, g, request

from .errors import LedgerError, ValidationError
from .responses import fail, from_error


def with_actor(f):
    """
    Establish the acting user for audit stamps.

    Authentication happens upstream; the gateway forwards the user id in the
    X-User-Id header. A missing header leaves g.actor_id as None.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id")
        if raw is None or raw.strip() == "":
            g.actor_id = None
        else:
            try:
                g.actor_id = int(raw.strip())
            except ValueError:
                return fail("X-User-Id must be an integer", 400, code=ValidationError.code)
        return f(*args, **kwargs)

    return decorated_function


def ledger_endpoint(action: str):
    """
    Translate ledger errors into the response envelope.

    LedgerError subclasses carry their own status. Anything else is logged with
    full context and answered with a generic 500 that leaks no internals.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except LedgerError as e:
                return from_error(e)
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return fail(f"Internal server error while trying to {action}", 500, code="INTERNAL")

        return decorated_function
    return decorator
