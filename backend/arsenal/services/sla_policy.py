"""
SLA policy for alert tickets.

WHAT: Pure functions and a small value object that turn a ticket priority
into a deadline, map alert severities to priorities, and derive a
ticket's SLA standing (ON_TIME / AT_RISK / BREACHED).

WHY: SLA rules are the part of escalation that must be exact at the
boundaries and must never regress a ticket to a "safer" standing. Keeping
them free of I/O makes every boundary directly testable with fixed
timestamps.

HOW: SLAPolicy is built once per operation from configuration (Settings
defaults overridden by system_config rows, see SystemConfigDAO) and
passed explicitly to the escalation engine and the SLA sweep.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional

from arsenal.models.alert import AlertSeverity
from arsenal.models.ticket import (
    Ticket,
    TicketPriority,
    SLAStatus,
    SLA_STATUS_RANK,
)


# Hours per priority when nothing else is configured
DEFAULT_SLA_HOURS: Dict[TicketPriority, int] = {
    TicketPriority.CRITICAL: 4,
    TicketPriority.HIGH: 8,
    TicketPriority.MEDIUM: 24,
    TicketPriority.LOW: 72,
}

DEFAULT_RISK_WINDOW = timedelta(hours=2)

SEVERITY_TO_PRIORITY: Dict[AlertSeverity, TicketPriority] = {
    AlertSeverity.CRITICAL: TicketPriority.CRITICAL,
    AlertSeverity.HIGH: TicketPriority.HIGH,
    AlertSeverity.MEDIUM: TicketPriority.MEDIUM,
    AlertSeverity.LOW: TicketPriority.LOW,
    AlertSeverity.INFO: TicketPriority.LOW,
}


def severity_to_priority(severity: AlertSeverity) -> TicketPriority:
    """Map an alert severity to the priority of the ticket it escalates to."""
    return SEVERITY_TO_PRIORITY[AlertSeverity(severity)]


@dataclass(frozen=True)
class SLAPolicy:
    """
    Response-time budget per priority plus the at-risk window.

    Example:
        policy = SLAPolicy.from_hours({TicketPriority.CRITICAL: 4, ...})
        deadline = policy.compute_deadline(TicketPriority.CRITICAL, now)
    """

    hours: Mapping[TicketPriority, int] = field(
        default_factory=lambda: dict(DEFAULT_SLA_HOURS)
    )
    risk_window: timedelta = DEFAULT_RISK_WINDOW

    @classmethod
    def from_hours(
        cls,
        hours: Mapping[TicketPriority, int],
        risk_window_hours: Optional[float] = None,
    ) -> "SLAPolicy":
        """Build a policy, filling priorities missing from `hours` with defaults."""
        merged = dict(DEFAULT_SLA_HOURS)
        merged.update({TicketPriority(k): int(v) for k, v in hours.items()})
        window = (
            timedelta(hours=risk_window_hours)
            if risk_window_hours is not None
            else DEFAULT_RISK_WINDOW
        )
        return cls(hours=merged, risk_window=window)

    def hours_for(self, priority: TicketPriority) -> int:
        """SLA budget in hours for a priority."""
        return self.hours[TicketPriority(priority)]

    def compute_deadline(self, priority: TicketPriority, now: datetime) -> datetime:
        """Deadline for a ticket of `priority` opened at `now`."""
        return now + timedelta(hours=self.hours_for(priority))

    def standing_at(self, deadline: datetime, now: datetime) -> SLAStatus:
        """
        Standing implied by the time left before `deadline`.

        remaining <= 0 is BREACHED, remaining <= risk window is AT_RISK.
        """
        remaining = deadline - now
        if remaining <= timedelta(0):
            return SLAStatus.BREACHED
        if remaining <= self.risk_window:
            return SLAStatus.AT_RISK
        return SLAStatus.ON_TIME


def worse_of(a: SLAStatus, b: SLAStatus) -> SLAStatus:
    """Return the worse of two SLA standings."""
    return a if SLA_STATUS_RANK[SLAStatus(a)] >= SLA_STATUS_RANK[SLAStatus(b)] else b


def recompute_sla(ticket: Ticket, now: datetime, policy: SLAPolicy) -> SLAStatus:
    """
    Derive a ticket's SLA standing at `now` without mutating it.

    - Resolved, closed and cancelled tickets keep their stored standing.
    - Open tickets get the worse of their stored standing and the
      standing implied by the deadline, so standing only ever degrades.
    """
    stored = SLAStatus(ticket.sla_status or SLAStatus.ON_TIME)
    if not ticket.is_open:
        return stored
    return worse_of(stored, policy.standing_at(ticket.sla_deadline, now))
