"""Stripe Terminal connection tokens for card readers."""

from __future__ import annotations

import stripe
from flask import Blueprint, current_app, g

from swiftcause.blueprints import json_error, json_response
from swiftcause.security import require_auth
from swiftcause.services.stripe_gateway import stripe_get, user_facing_message

bp = Blueprint("terminal", __name__)


@bp.post("/connection-token")
@require_auth(optional=True)
def connection_token():
    if current_app.config.get("TERMINAL_REQUIRE_AUTH") and g.identity is None:
        return json_error("User must be authenticated.", 401)

    try:
        token = stripe.terminal.ConnectionToken.create()
    except stripe.StripeError as e:
        current_app.logger.error("terminal: failed to create connection token: %s", e, exc_info=True)
        return json_error(user_facing_message(e, "Failed to create connection token"), 502)
    return json_response({"secret": stripe_get(token, "secret")})
