# Overview: Request identity and rate-limit decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .validation import parse_int


def _header_id(name: str):
    """Positive integer header value, None when absent, ValueError when malformed."""
    raw = request.headers.get(name)
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    if not value.isdigit() or int(value) <= 0:
        raise ValueError(name)
    return int(value)


def branch_from(source, field: str = "branch_id"):
    """Branch from the request, falling back to the caller's own branch."""
    raw = source.get(field)
    if raw in (None, ""):
        return g.branch_id
    return parse_int(raw, field, minimum=1)


def require_context(f):
    """
    Require the caller identity resolved by the upstream auth layer.

    Sets the following Flask g attributes:
    - g.business_id: tenant scope for every read and write - REQUIRED
    - g.user_id: acting user - REQUIRED
    - g.branch_id: the caller's branch (may be None for business-level users)

    Returns 401 if the business or user header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            business_id = _header_id("X-Business-Id")
            user_id = _header_id("X-User-Id")
            branch_id = _header_id("X-Branch-Id")
        except ValueError as e:
            return jsonify({"error": f"Invalid {e} header"}), 401

        if business_id is None or user_id is None:
            return jsonify({"error": "Authentication required"}), 401

        g.business_id = business_id
        g.user_id = user_id
        g.branch_id = branch_id

        return f(*args, **kwargs)

    return decorated_function


def rate_limit(key_prefix: str):
    """
    Limit requests per client address using the app's rate-limit store.

    Returns 429 with a Retry-After header once the window is exhausted.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            config = current_app.config
            store = current_app.extensions.get("rate_limit_store")
            if not config.get("RATE_LIMIT_ENABLED", True) or store is None:
                return f(*args, **kwargs)

            key = f"{key_prefix}:{request.remote_addr or 'unknown'}"
            result = store.hit(
                key,
                config["RATE_LIMIT_MAX_REQUESTS"],
                config["RATE_LIMIT_WINDOW_SECONDS"],
            )
            if not result.allowed:
                current_app.logger.warning("Rate limit exceeded for %s", key)
                response = jsonify({
                    "error": "Too many requests, please try again later.",
                    "retry_after": result.retry_after,
                })
                response.status_code = 429
                response.headers["Retry-After"] = str(result.retry_after)
                return response

            return f(*args, **kwargs)

        return decorated_function
    return decorator
