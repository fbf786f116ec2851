"""
Campaign lifecycle rules.

A campaign's stored status is only part of the story: reaching the goal
completes it, an elapsed end date pauses it (once per end date, so an admin
can re-activate it), and a future start date keeps it paused. ``reconcile``
computes the effective status plus the bookkeeping columns to persist.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Any, Dict, Optional

from swiftcause.models.campaign import CAMPAIGN_STATUSES
from swiftcause.models.mixins import utcnow

SYSTEM_RECONCILE = "SYSTEM_RECONCILE"
MANUAL_STATUS_SET = "MANUAL_STATUS_SET"
GOAL_UPDATED = "GOAL_UPDATED"
END_DATE_UPDATED = "END_DATE_UPDATED"


@dataclass(frozen=True)
class CampaignState:
    status: Optional[str]
    goal: int
    raised: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    auto_completed_goal: Optional[int] = None
    auto_paused_end_date: Optional[date] = None

    @classmethod
    def of(cls, campaign: Any) -> "CampaignState":
        return cls(
            status=campaign.status,
            goal=int(campaign.goal or 0),
            raised=int(campaign.collected_amount or 0),
            start_date=campaign.start_date,
            end_date=campaign.end_date,
            auto_completed_goal=campaign.auto_completed_goal,
            auto_paused_end_date=campaign.auto_paused_end_date,
        )


@dataclass(frozen=True)
class StatusResolution:
    status: str
    updates: Dict[str, Any] = field(default_factory=dict)


def reconcile(state: CampaignState, now: Optional[datetime] = None) -> StatusResolution:
    now = now or utcnow()
    status = state.status
    goal = state.goal or 0

    if goal > 0 and state.raised >= goal and state.auto_completed_goal != goal:
        return StatusResolution(
            "completed",
            {"status": "completed", "auto_completed_goal": goal, "auto_completed_at": now},
        )

    if status == "completed":
        return StatusResolution("completed")

    if state.end_date and datetime.combine(state.end_date, time.max) < now:
        if status != "paused" and state.auto_paused_end_date != state.end_date:
            return StatusResolution(
                "paused",
                {"status": "paused", "auto_paused_end_date": state.end_date, "auto_paused_end_date_at": now},
            )
        return StatusResolution("active" if status == "active" else "paused")

    if state.start_date:
        if datetime.combine(state.start_date, time.min) > now:
            return StatusResolution("paused")
        return StatusResolution("active" if status == "active" else "paused")

    return StatusResolution("paused" if status == "paused" else "active")


def apply_event(state: CampaignState, event: str, value: Any = None, now: Optional[datetime] = None) -> StatusResolution:
    """Next status for ``state`` after a lifecycle ``event``.

    ``value`` carries the event payload: the new status, goal or end date.
    """
    if event == MANUAL_STATUS_SET:
        if value not in CAMPAIGN_STATUSES:
            raise ValueError(f"Unknown campaign status: {value!r}")
        return StatusResolution(value, {"status": value})
    if event == GOAL_UPDATED:
        return reconcile(replace(state, goal=int(value or 0)), now)
    if event == END_DATE_UPDATED:
        return reconcile(replace(state, end_date=value), now)
    return reconcile(state, now)


def effective_status(campaign: Any, now: Optional[datetime] = None) -> str:
    return reconcile(CampaignState.of(campaign), now).status


def accepts_donations(campaign: Any, now: Optional[datetime] = None) -> bool:
    return effective_status(campaign, now) == "active"


def reconcile_campaign(campaign: Any, now: Optional[datetime] = None) -> StatusResolution:
    """Reconcile a Campaign row in place (caller commits)."""
    res = reconcile(CampaignState.of(campaign), now)
    for key, val in res.updates.items():
        setattr(campaign, key, val)
    return res
