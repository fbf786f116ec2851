# swiftcause/__init__.py
# SwiftCause donation API: Flask app factory
# - deterministic blueprint registration
# - proxy-correct behind a reverse proxy
# - JSON errors everywhere; webhooks answer with empty bodies

from __future__ import annotations

import logging
import os
import time
from typing import Any, List, Optional, Tuple, Type, Union
from uuid import uuid4

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, g, request
from flask_talisman import Talisman
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import import_string

# never override real env vars
load_dotenv(override=False)

from swiftcause.extensions import cors, db, init_stripe, mail, migrate  # noqa: E402
from swiftcause.outbox import outbox  # noqa: E402

ConfigLike = Union[str, Type[Any]]

__version__ = "1.0.0"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _env_mode(app: Optional[Flask] = None) -> str:
    """
    Environment mode, in priority order:
      1) app.config["ENV"] when meaningful
      2) APP_ENV / ENV / FLASK_ENV
      3) "development"
    """
    if app is not None:
        v = str(app.config.get("ENV") or "").strip().lower()
        if v and v != "base":
            return v

    for key in ("APP_ENV", "ENV", "FLASK_ENV"):
        val = (os.getenv(key) or "").strip().lower()
        if val:
            if val == "prod":
                return "production"
            if val == "dev":
                return "development"
            return val
    return "development"


def _resolve_config(target: Optional[ConfigLike]) -> ConfigLike:
    if target is not None:
        return target

    explicit = (os.getenv("FLASK_CONFIG") or "").strip()
    if explicit:
        return explicit

    env = _env_mode(None)
    if env == "production":
        return "swiftcause.config.ProductionConfig"
    if env == "testing":
        return "swiftcause.config.TestingConfig"
    return "swiftcause.config.DevelopmentConfig"


def _config_object(cfg: ConfigLike) -> Any:
    return import_string(cfg) if isinstance(cfg, str) else cfg


def _is_prod(app: Flask) -> bool:
    return _env_mode(app) == "production"


def _json_error(message: str, status: int):
    from swiftcause.blueprints import json_error

    return json_error(message, status)


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            record.request_id = "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if not any(isinstance(f, _RequestIDFilter) for f in h.filters):
                h.addFilter(_RequestIDFilter())

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info("Loaded config: ENV=%s DEBUG=%s", app.config.get("ENV", "?"), app.debug)


def _apply_proxyfix(app: Flask) -> None:
    if not app.config.get("TRUST_PROXY", False):
        return
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)
    app.logger.info("ProxyFix enabled (trusting X-Forwarded-* headers).")
    app.config["PREFERRED_URL_SCHEME"] = "https"


# -----------------------------------------------------------------------------
# Integrations
# -----------------------------------------------------------------------------
def _init_sentry(app: Flask) -> None:
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn or app.testing:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        send_default_pii=False,
        environment=app.config.get("ENV", "development"),
        release=os.getenv("GIT_COMMIT"),
    )
    app.logger.info("Sentry initialized")


def _init_talisman(app: Flask) -> None:
    if not _is_prod(app):
        return
    Talisman(app, content_security_policy=None, force_https=False)


def _parse_cors_origins(app: Flask) -> Union[str, List[str]]:
    raw = str(app.config.get("CORS_ORIGINS") or "*").strip()
    if raw in {"", "*"}:
        return "*"
    return [o.strip() for o in raw.split(",") if o.strip()]


def _init_cors(app: Flask) -> None:
    origins = _parse_cors_origins(app)
    api = {"origins": origins}
    cors.init_app(
        app,
        supports_credentials=False,
        resources={
            r"/payments/*": api,
            r"/donations*": api,
            r"/campaigns/*": api,
            r"/kiosk/*": api,
            r"/connect/*": api,
            r"/terminal/*": api,
            r"/gift-aid/*": api,
        },
        expose_headers=["X-Request-ID"],
        allow_headers=["Content-Type", "Authorization", "Idempotency-Key", "X-Request-ID"],
        methods=["GET", "POST", "PATCH", "OPTIONS"],
    )


def _maybe_create_sqlite_tables(app: Flask) -> None:
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite") or app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return
    with app.app_context():
        db.create_all()


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        if (request.path or "").startswith("/webhooks/"):
            return ("", err.code or 500)
        return _json_error(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        app.logger.exception("Unhandled error")
        db.session.rollback()
        if (request.path or "").startswith("/webhooks/"):
            return ("", 500)
        return _json_error("Internal Server Error", 500)


# -----------------------------------------------------------------------------
# Blueprints
# -----------------------------------------------------------------------------
def _register_blueprints(app: Flask) -> None:
    from swiftcause.blueprints import campaigns, connect, donations, gift_aid, kiosk, payments, terminal, webhooks

    mounts: List[Tuple[Any, str]] = [
        (payments.bp, "/payments"),
        (donations.bp, "/donations"),
        (campaigns.bp, "/campaigns"),
        (connect.bp, "/connect"),
        (terminal.bp, "/terminal"),
        (webhooks.bp, "/webhooks"),
        (kiosk.bp, "/kiosk"),
        (gift_aid.bp, "/gift-aid"),
    ]
    for blueprint, prefix in mounts:
        app.register_blueprint(blueprint, url_prefix=prefix)
        app.logger.debug("Registered blueprint: %-12s → %s", blueprint.name, prefix)


def _register_health_endpoints(app: Flask) -> None:
    @app.get("/healthz")
    def _healthz():
        return {
            "status": "ok",
            "brand": app.config.get("BRAND_NAME", "SwiftCause"),
            "env": app.config.get("ENV", "unknown"),
            "request_id": getattr(g, "request_id", "-"),
        }

    @app.get("/version")
    def _version():
        return {
            "version": os.getenv("GIT_COMMIT") or __version__,
            "env": app.config.get("ENV"),
            "brand": app.config.get("BRAND_NAME", "SwiftCause"),
            "public_base_url": app.config.get("PUBLIC_BASE_URL") or "",
        }


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__, static_folder=None, template_folder=None)

    # ---- Config loading
    cfg = _resolve_config(config_class)
    try:
        app.config.from_object(cfg)
    except ImportError as exc:
        raise RuntimeError(f"Invalid FLASK_CONFIG '{cfg}': {exc}") from exc

    env = _env_mode(app)
    app.config["ENV"] = env
    init_hook = getattr(_config_object(cfg), "init_app", None)
    if callable(init_hook):
        init_hook(app)

    app.url_map.strict_slashes = False
    app.config.setdefault("JSON_SORT_KEYS", False)
    app.config.setdefault("PROPAGATE_EXCEPTIONS", False)

    # ---- Proxy handling first
    _apply_proxyfix(app)
    _configure_logging(app)

    # ---- Integrations
    _init_sentry(app)
    _init_talisman(app)
    _init_cors(app)

    # ---- Core extensions
    db.init_app(app)
    from swiftcause import models  # noqa: F401  (register mappers before create_all)

    _maybe_create_sqlite_tables(app)
    migrate.init_app(app, db, compare_type=True, render_as_batch=True)
    mail.init_app(app)
    init_stripe(app)
    outbox.init_app(app)

    # ---- Request lifecycle / errors
    _register_request_lifecycle(app)
    _register_error_handlers(app)

    # ---- Blueprints + health + CLI
    _register_blueprints(app)
    _register_health_endpoints(app)

    from swiftcause.cli import swiftcause_cli

    app.cli.add_command(swiftcause_cli)
    return app
