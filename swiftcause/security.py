# swiftcause/security.py
# ─────────────────────────────────────────────────────────────────────────────
# Bearer identity tokens (PyJWT) + request guards
# ─────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Dict, Optional, Tuple

import jwt
from flask import current_app, g, request
from werkzeug.exceptions import Forbidden, Unauthorized

from swiftcause import policy

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The verified caller behind a bearer token."""

    uid: str
    role: str
    email: Optional[str] = None
    name: Optional[str] = None
    organization_id: Optional[str] = None
    kiosk_id: Optional[str] = None
    assigned_campaigns: Tuple[str, ...] = field(default_factory=tuple)
    currency: Optional[str] = None

    @property
    def is_kiosk(self) -> bool:
        return self.role == "kiosk"

    def can(self, permission: str) -> bool:
        return policy.has_permission(self.role, permission)

    def can_donate_to(self, campaign_id: str, campaign_org_id: Optional[str] = None) -> bool:
        if not self.can("donate_campaigns"):
            return False
        if not self.is_kiosk:
            return True
        if campaign_org_id and self.organization_id and campaign_org_id != self.organization_id:
            return False
        if not self.assigned_campaigns:
            return True
        return campaign_id in self.assigned_campaigns

    def to_claims(self) -> Dict[str, Any]:
        claims: Dict[str, Any] = {"sub": self.uid, "role": self.role}
        if self.email:
            claims["email"] = self.email
        if self.name:
            claims["name"] = self.name
        if self.organization_id:
            claims["org_id"] = self.organization_id
        if self.kiosk_id:
            claims["kiosk_id"] = self.kiosk_id
        if self.assigned_campaigns:
            claims["campaigns"] = list(self.assigned_campaigns)
        if self.currency:
            claims["currency"] = self.currency
        return claims

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Identity":
        uid = str(claims.get("sub") or "").strip()
        if not uid:
            raise Unauthorized("Token has no subject.")
        role = str(claims.get("role") or "viewer").strip().lower()
        if not policy.is_role(role):
            raise Unauthorized("Token carries an unknown role.")
        campaigns = claims.get("campaigns") or []
        return cls(
            uid=uid,
            role=role,
            email=claims.get("email") or None,
            name=claims.get("name") or None,
            organization_id=claims.get("org_id") or None,
            kiosk_id=claims.get("kiosk_id") or None,
            assigned_campaigns=tuple(str(c) for c in campaigns if c),
            currency=claims.get("currency") or None,
        )


# =============================================================================
# Token Helpers
# =============================================================================
def issue_identity_token(identity: Identity, ttl_seconds: Optional[int] = None) -> str:
    cfg = current_app.config
    now = int(time.time())
    claims = identity.to_claims()
    claims["iat"] = now
    claims["exp"] = now + int(ttl_seconds or cfg.get("IDENTITY_TOKEN_TTL", 3600))
    if cfg.get("JWT_ISSUER"):
        claims["iss"] = cfg["JWT_ISSUER"]
    if cfg.get("JWT_AUDIENCE"):
        claims["aud"] = cfg["JWT_AUDIENCE"]
    return jwt.encode(claims, cfg["JWT_SECRET"], algorithm=cfg.get("JWT_ALG", "HS256"))


def _bearer_token() -> Optional[str]:
    h = request.headers.get("Authorization", "")
    return h.split(" ", 1)[1].strip() if h.lower().startswith("bearer ") else None


def verify_identity_token(tok: str) -> Identity:
    cfg = current_app.config
    audience = cfg.get("JWT_AUDIENCE") or None
    issuer = cfg.get("JWT_ISSUER") or None
    try:
        claims = jwt.decode(
            tok,
            key=cfg["JWT_SECRET"],
            algorithms=[cfg.get("JWT_ALG", "HS256")],
            audience=audience,
            issuer=issuer,
            options={"verify_aud": bool(audience), "verify_iss": bool(issuer)},
        )
    except jwt.PyJWTError as e:
        log.info("Rejected bearer token: %s", e)
        raise Unauthorized("Invalid or expired identity token.")
    return Identity.from_claims(claims)


def current_identity() -> Optional[Identity]:
    return getattr(g, "identity", None)


# =============================================================================
# Decorators
# =============================================================================
def require_auth(optional: bool = False):
    """
    Enforce a bearer identity token; the verified Identity lands on g.identity.
        @bp.post("/intent")
        @require_auth()
        def create_intent(): ...
    """

    def decorator(fn):
        @wraps(fn)
        def wrapped(*args, **kwargs):
            tok = _bearer_token()
            if not tok:
                if optional:
                    g.identity = None
                    return fn(*args, **kwargs)
                raise Unauthorized("User must be authenticated.")
            g.identity = verify_identity_token(tok)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_permission(permission: str):
    """Like require_auth(), then 403 unless the caller's role grants ``permission``."""

    def decorator(fn):
        @wraps(fn)
        @require_auth()
        def wrapped(*args, **kwargs):
            ident: Identity = g.identity
            if not ident.can(permission):
                raise Forbidden("You do not have permission to perform this action.")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
