import re
from decimal import Decimal, InvalidOperation
from functools import wraps

from flask import jsonify, session


def validate_email(email):
    return re.match(r'^[\w\.+-]+@[\w\.-]+\.\w+$', email or '') is not None


def validate_phone(phone):
    return re.match(r'^\+?\d{8,15}$', phone or '') is not None


def parse_amount(value):
    """Decimal from user input, None if it is not a finite number."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite():
        return None
    return amount


def login_required_json(f):
    """Reject requests without a session user_id with a JSON 401."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get("user_id"):
            return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated_function
