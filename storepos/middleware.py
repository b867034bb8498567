"""Middleware for seller context on POS requests."""
from functools import wraps

from flask import session, g, current_app

from storepos.database import get_session
from storepos.exceptions import UnauthorizedError
from storepos.models import AppUser


def load_seller():
    """
    Load the current seller into g (Flask's per-request global).

    Called before each request. Sets g.user and g.user_id when the session
    holds the id of an active user; both stay None otherwise.
    """
    g.user = None
    g.user_id = None

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        db_session = get_session()
        if not db_session:
            return

        user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
        if user:
            g.user = user
            g.user_id = user.id
    except Exception as e:
        # A broken seller lookup must not take down unrelated endpoints
        current_app.logger.error(f"Error in load_seller: {e}")


def require_seller(f):
    """
    Decorator: Require a seller on the request.

    Answers 401 JSON (through the PosError handler) when nobody is logged in.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None:
            raise UnauthorizedError('Debes iniciar sesión para operar el punto de venta.')
        return f(*args, **kwargs)
    return decorated_function
