import atexit
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

import stripe
from flask_cors import CORS
from flask_mail import Mail, Message
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
mail = Mail()
cors = CORS()


# ─────────────────────────────────────────────────────────────
# Background tasks + clean shutdown
# ─────────────────────────────────────────────────────────────
_BG_MAX_WORKERS = int(os.getenv("OUTBOX_MAX_WORKERS", "4"))
_EXECUTOR = ThreadPoolExecutor(max_workers=_BG_MAX_WORKERS, thread_name_prefix="swiftcause-bg")


def run_bg(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    return _EXECUTOR.submit(func, *args, **kwargs)


@atexit.register
def _shutdown_executor() -> None:
    _EXECUTOR.shutdown(wait=False, cancel_futures=True)


# ─────────────────────────────────────────────────────────────
# Safe DB helpers
# ─────────────────────────────────────────────────────────────
def tx_commit() -> None:
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ─────────────────────────────────────────────────────────────
# Email helper
# ─────────────────────────────────────────────────────────────
def send_mail(
    subject: str,
    recipients: List[str],
    *,
    text: Optional[str] = None,
    html: Optional[str] = None,
    sender: Optional[str] = None,
    max_retries: int = 2,
    retry_backoff: float = 0.5,
) -> None:
    """Send one message through Flask-Mail, retrying transient failures.

    Must run inside an app context. Raises the last error once retries are
    exhausted so the caller can record it.
    """
    msg = Message(subject=subject, recipients=recipients, body=text, html=html, sender=sender)

    attempts = 0
    while True:
        try:
            mail.send(msg)
            return
        except Exception as e:
            attempts += 1
            if attempts > max_retries:
                raise
            log.warning("Mail send failed (attempt %s/%s): %s", attempts, max_retries, e)
            time.sleep(float(retry_backoff) * attempts)


# ─────────────────────────────────────────────────────────────
# Stripe initialization
# ─────────────────────────────────────────────────────────────
def _guess_stripe_mode(api_key: Optional[str]) -> str:
    if not api_key:
        return "disabled"
    if api_key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if api_key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unknown"


def init_stripe(app: Any) -> None:
    """Configure the global stripe module. A missing secret key is fatal."""
    api_key = (app.config.get("STRIPE_SECRET_KEY") or "").strip()
    if not api_key:
        raise RuntimeError("STRIPE_SECRET_KEY is not configured; refusing to start.")

    stripe.api_key = api_key
    stripe.max_network_retries = int(app.config.get("STRIPE_MAX_NETWORK_RETRIES") or 0)
    stripe.set_app_info(app.config.get("BRAND_NAME", "SwiftCause"), version=os.getenv("GIT_COMMIT", "dev"))

    app.logger.info("Stripe initialized (%s mode)", _guess_stripe_mode(api_key))


__all__ = [
    "db",
    "migrate",
    "mail",
    "cors",
    "run_bg",
    "tx_commit",
    "send_mail",
    "init_stripe",
]
