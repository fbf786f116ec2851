# swiftcause/config/config.py
# Canonical SwiftCause configuration (env-first, production-safe)

from __future__ import annotations

import os
from typing import Optional, Tuple


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    v = _env(name)
    if v is None:
        return default
    try:
        return float(str(v).strip())
    except ValueError:
        return default


def _csv(name: str, default: str) -> Tuple[str, ...]:
    raw = _env(name, default) or ""
    return tuple(p.strip().lower() for p in raw.split(",") if p.strip())


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - all important settings can be overridden via environment variables
    - safe defaults for local dev
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")
    BRAND_NAME = _env("BRAND_NAME", "SwiftCause")

    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", "http://localhost:5000"))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", False)

    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")
    CORS_ORIGINS = _env("CORS_ORIGINS", "*")

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", _env("DATABASE_URL", "sqlite:///swiftcause-dev.db"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    # Stripe
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY", "")
    STRIPE_PUBLISHABLE_KEY = _env("STRIPE_PUBLISHABLE_KEY", "")
    STRIPE_WEBHOOK_SECRET = _env("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_WEBHOOK_SECRET_ACCOUNT = _env("STRIPE_WEBHOOK_SECRET_ACCOUNT", "")
    STRIPE_MAX_NETWORK_RETRIES = _int("STRIPE_MAX_NETWORK_RETRIES", 2)

    SUPPORTED_CURRENCIES = _csv("SUPPORTED_CURRENCIES", "usd,eur,gbp,cad,aud")
    DEFAULT_CURRENCY = (_env("DEFAULT_CURRENCY", "gbp") or "gbp").lower()

    # Connect onboarding redirect origins (CSV); anything else falls back to PUBLIC_BASE_URL
    CONNECT_ALLOWED_ORIGINS = _csv("CONNECT_ALLOWED_ORIGINS", "http://localhost:3000")
    TERMINAL_REQUIRE_AUTH = _bool("TERMINAL_REQUIRE_AUTH", False)

    # Identity tokens
    JWT_SECRET = _env("JWT_SECRET", "dev-jwt-change-me")
    JWT_ALG = _env("JWT_ALG", "HS256")
    JWT_ISSUER = _env("JWT_ISSUER")
    JWT_AUDIENCE = _env("JWT_AUDIENCE")
    IDENTITY_TOKEN_TTL = _int("IDENTITY_TOKEN_TTL", 12 * 3600)

    # Flask-Mail
    MAIL_SERVER = _env("MAIL_SERVER", "localhost")
    MAIL_PORT = _int("MAIL_PORT", 25)
    MAIL_USE_TLS = _bool("MAIL_USE_TLS", False)
    MAIL_USE_SSL = _bool("MAIL_USE_SSL", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", "SwiftCause <no-reply@localhost>")
    MAIL_MAX_ATTEMPTS = _int("MAIL_MAX_ATTEMPTS", 5)

    # Side-effect outbox
    OUTBOX_EAGER = _bool("OUTBOX_EAGER", False)
    OUTBOX_MAX_ATTEMPTS = _int("OUTBOX_MAX_ATTEMPTS", 3)
    OUTBOX_BACKOFF_SECONDS = _float("OUTBOX_BACKOFF_SECONDS", 0.5)
    OUTBOX_MAX_WORKERS = _int("OUTBOX_MAX_WORKERS", 4)

    @classmethod
    def init_app(cls, app) -> None:
        """
        Boot hardening hook, called by create_app() after config loading.
        """
        uri = str(app.config.get("SQLALCHEMY_DATABASE_URI") or "")

        # SQLite tuning (better concurrency behavior than default)
        if uri.startswith("sqlite:"):
            opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
            connect_args = dict(opts.get("connect_args") or {})
            connect_args.setdefault("check_same_thread", False)
            opts["connect_args"] = connect_args
            opts.setdefault("pool_pre_ping", True)
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")
    TRUST_PROXY = _bool("TRUST_PROXY", False)


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}

    STRIPE_SECRET_KEY = "sk_test_swiftcause"
    STRIPE_PUBLISHABLE_KEY = "pk_test_swiftcause"
    STRIPE_WEBHOOK_SECRET = "whsec_test_payments"
    STRIPE_WEBHOOK_SECRET_ACCOUNT = "whsec_test_account"
    STRIPE_MAX_NETWORK_RETRIES = 0

    JWT_SECRET = "test-jwt-secret"
    JWT_ISSUER = None
    JWT_AUDIENCE = None

    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "SwiftCause <receipts@swiftcause.test>"
    MAIL_MAX_ATTEMPTS = 2

    OUTBOX_EAGER = True
    OUTBOX_MAX_ATTEMPTS = 2
    OUTBOX_BACKOFF_SECONDS = 0.0

    TERMINAL_REQUIRE_AUTH = False
    CONNECT_ALLOWED_ORIGINS = ("https://kiosk.swiftcause.test",)
    PUBLIC_BASE_URL = "https://app.swiftcause.test"


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", True)
    AUTO_CREATE_SQLITE = False

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

        jwt_secret = app.config.get("JWT_SECRET")
        if not jwt_secret or jwt_secret == "dev-jwt-change-me":
            raise RuntimeError("JWT_SECRET must be set in production.")

        if not app.config.get("STRIPE_WEBHOOK_SECRET"):
            raise RuntimeError("STRIPE_WEBHOOK_SECRET must be set in production.")

        if not app.config.get("MAIL_DEFAULT_SENDER"):
            raise RuntimeError("MAIL_DEFAULT_SENDER must be set in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")
