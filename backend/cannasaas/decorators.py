# Overview: Request-context decorator for API routes.

from functools import wraps

from flask import request, jsonify, g


def _int_header(name: str):
    raw = request.headers.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def require_context(customer: bool = False):
    """
    Establish tenant and actor context from trusted gateway headers.

    Authentication happens upstream; the gateway forwards who is calling:
    - X-Org-Id: tenant (required)
    - X-Customer-Id: the shopper (required when customer=True)
    - X-Actor-Id: staff or system actor recorded in audit trails

    Sets g.org_id, g.customer_id and g.actor. Returns 401 when a required
    header is missing or malformed.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            org_id = _int_header("X-Org-Id")
            if org_id is None:
                return jsonify({"error": "Missing tenant context"}), 401

            customer_id = _int_header("X-Customer-Id")
            if customer and customer_id is None:
                return jsonify({"error": "Missing customer context"}), 401

            g.org_id = org_id
            g.customer_id = customer_id
            g.actor = (request.headers.get("X-Actor-Id") or "").strip() or (
                str(customer_id) if customer_id is not None else None
            )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
