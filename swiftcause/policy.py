"""
Role → permission mapping.

Every authorization decision, on the server and in the client flow library,
goes through :func:`allowed_actions` / :func:`is_allowed`. Permissions are
named ``<action>_<resource>`` (``view_donations``, ``export_donations``...).
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Tuple

ROLES: Tuple[str, ...] = ("super_admin", "admin", "manager", "operator", "viewer", "kiosk")

ALL_PERMISSIONS: FrozenSet[str] = frozenset(
    {
        "view_dashboard",
        "view_campaigns",
        "create_campaign",
        "edit_campaign",
        "delete_campaign",
        "view_kiosks",
        "create_kiosk",
        "edit_kiosk",
        "delete_kiosk",
        "assign_campaigns",
        "view_donations",
        "export_donations",
        "view_users",
        "create_user",
        "edit_user",
        "delete_user",
        "manage_permissions",
        "donate_campaigns",
        "system_admin",
    }
)

_READ_ONLY = frozenset({"view_dashboard", "view_campaigns", "view_kiosks", "view_donations"})
# every signed-in role may give; kiosks are further limited by their assignment
_DONOR = frozenset({"donate_campaigns"})

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "super_admin": ALL_PERMISSIONS,
    "admin": frozenset(
        {
            "view_dashboard",
            "view_campaigns",
            "create_campaign",
            "edit_campaign",
            "delete_campaign",
            "view_kiosks",
            "create_kiosk",
            "edit_kiosk",
            "delete_kiosk",
            "assign_campaigns",
            "view_donations",
            "export_donations",
            "view_users",
            "create_user",
            "edit_user",
            "delete_user",
            "manage_permissions",
        }
    ) | _DONOR,
    "manager": frozenset(
        {
            "view_dashboard",
            "view_campaigns",
            "create_campaign",
            "edit_campaign",
            "view_kiosks",
            "create_kiosk",
            "edit_kiosk",
            "assign_campaigns",
            "view_donations",
            "export_donations",
            "view_users",
            "create_user",
            "edit_user",
        }
    ) | _DONOR,
    "operator": _READ_ONLY | _DONOR,
    "viewer": _READ_ONLY | _DONOR,
    "kiosk": frozenset({"view_campaigns", "donate_campaigns"}),
}

# singular/plural spellings used by the permission names
_RESOURCE_ALIASES = {
    "campaign": "campaigns",
    "kiosk": "kiosks",
    "donation": "donations",
    "user": "users",
}


def _normalize_resource(resource: str) -> str:
    r = (resource or "").strip().lower()
    return _RESOURCE_ALIASES.get(r, r)


def _split(permission: str) -> Tuple[str, str]:
    action, _, resource = permission.partition("_")
    return action, _normalize_resource(resource)


def is_role(role: str) -> bool:
    return role in ROLE_PERMISSIONS


def allowed_actions(role: str, resource: str) -> FrozenSet[str]:
    """Actions ``role`` may perform on ``resource``; empty for unknown roles."""
    wanted = _normalize_resource(resource)
    actions = set()
    for perm in ROLE_PERMISSIONS.get(role, frozenset()):
        action, res = _split(perm)
        if res == wanted:
            actions.add(action)
    return frozenset(actions)


def is_allowed(role: str, action: str, resource: str) -> bool:
    return action in allowed_actions(role, resource)


def has_permission(role: str, permission: str) -> bool:
    action, resource = _split(permission)
    return is_allowed(role, action, resource)
