"""
Unit tests for SLA policy.

WHAT: Deadline computation, severity mapping and SLA standing at the
exact boundaries.

WHY: A standing that flips one minute late, or improves after a breach,
sends the wrong people the wrong notification.
"""

from datetime import datetime, timedelta

import pytest

from arsenal.models.alert import AlertSeverity
from arsenal.models.ticket import SLAStatus, Ticket, TicketPriority, TicketStatus
from arsenal.services.sla_policy import (
    SLAPolicy,
    recompute_sla,
    severity_to_priority,
    worse_of,
)


T0 = datetime(2026, 3, 14, 9, 0, 0)


def make_ticket(
    deadline: datetime,
    status: TicketStatus = TicketStatus.OPEN,
    sla_status: SLAStatus = SLAStatus.ON_TIME,
) -> Ticket:
    return Ticket(
        ticket_number="TKT-202603-00001",
        title="t",
        description="d",
        priority=TicketPriority.CRITICAL,
        status=status,
        sla_deadline=deadline,
        sla_status=sla_status,
    )


class TestSeverityToPriority:
    @pytest.mark.parametrize(
        "severity,priority",
        [
            (AlertSeverity.CRITICAL, TicketPriority.CRITICAL),
            (AlertSeverity.HIGH, TicketPriority.HIGH),
            (AlertSeverity.MEDIUM, TicketPriority.MEDIUM),
            (AlertSeverity.LOW, TicketPriority.LOW),
            (AlertSeverity.INFO, TicketPriority.LOW),
        ],
    )
    def test_mapping(self, severity, priority):
        assert severity_to_priority(severity) == priority

    def test_accepts_raw_value(self):
        assert severity_to_priority("HIGH") == TicketPriority.HIGH


class TestComputeDeadline:
    @pytest.mark.parametrize(
        "priority,hours",
        [
            (TicketPriority.CRITICAL, 4),
            (TicketPriority.HIGH, 8),
            (TicketPriority.MEDIUM, 24),
            (TicketPriority.LOW, 72),
        ],
    )
    def test_default_budgets(self, priority, hours):
        assert SLAPolicy().compute_deadline(priority, T0) == T0 + timedelta(hours=hours)

    def test_configured_hours_override_defaults(self):
        policy = SLAPolicy.from_hours({TicketPriority.CRITICAL: 2})

        assert policy.compute_deadline(TicketPriority.CRITICAL, T0) == T0 + timedelta(hours=2)
        # Missing priorities keep their defaults
        assert policy.hours_for(TicketPriority.LOW) == 72

    def test_custom_risk_window(self):
        policy = SLAPolicy.from_hours({}, risk_window_hours=1)
        deadline = T0 + timedelta(hours=4)

        assert policy.standing_at(deadline, deadline - timedelta(minutes=90)) == SLAStatus.ON_TIME
        assert policy.standing_at(deadline, deadline - timedelta(minutes=60)) == SLAStatus.AT_RISK


class TestStandingBoundaries:
    """ON_TIME before D-2h, AT_RISK from D-2h, BREACHED from D."""

    policy = SLAPolicy()
    deadline = T0 + timedelta(hours=4)

    def test_on_time_just_before_risk_window(self):
        now = self.deadline - timedelta(hours=2, seconds=1)
        assert self.policy.standing_at(self.deadline, now) == SLAStatus.ON_TIME

    def test_at_risk_exactly_at_window_start(self):
        now = self.deadline - timedelta(hours=2)
        assert self.policy.standing_at(self.deadline, now) == SLAStatus.AT_RISK

    def test_at_risk_just_before_deadline(self):
        now = self.deadline - timedelta(seconds=1)
        assert self.policy.standing_at(self.deadline, now) == SLAStatus.AT_RISK

    def test_breached_exactly_at_deadline(self):
        assert self.policy.standing_at(self.deadline, self.deadline) == SLAStatus.BREACHED

    def test_breached_after_deadline(self):
        now = self.deadline + timedelta(days=3)
        assert self.policy.standing_at(self.deadline, now) == SLAStatus.BREACHED


class TestRecomputeSLA:
    policy = SLAPolicy()

    def test_open_ticket_follows_clock(self):
        ticket = make_ticket(T0 + timedelta(hours=4))

        assert recompute_sla(ticket, T0, self.policy) == SLAStatus.ON_TIME
        assert recompute_sla(ticket, T0 + timedelta(hours=2, minutes=1), self.policy) == SLAStatus.AT_RISK
        assert recompute_sla(ticket, T0 + timedelta(hours=4, minutes=1), self.policy) == SLAStatus.BREACHED

    def test_does_not_mutate_ticket(self):
        ticket = make_ticket(T0 + timedelta(hours=4))

        recompute_sla(ticket, T0 + timedelta(hours=5), self.policy)

        assert ticket.sla_status == SLAStatus.ON_TIME

    def test_never_improves_while_open(self):
        # Stored BREACHED, deadline far away (e.g. budget raised afterwards)
        ticket = make_ticket(T0 + timedelta(hours=72), sla_status=SLAStatus.BREACHED)

        assert recompute_sla(ticket, T0, self.policy) == SLAStatus.BREACHED

    def test_at_risk_does_not_return_to_on_time(self):
        ticket = make_ticket(T0 + timedelta(hours=24), sla_status=SLAStatus.AT_RISK)

        assert recompute_sla(ticket, T0, self.policy) == SLAStatus.AT_RISK

    @pytest.mark.parametrize(
        "status",
        [TicketStatus.RESOLVED, TicketStatus.CLOSED, TicketStatus.CANCELLED],
    )
    def test_frozen_after_resolution(self, status):
        ticket = make_ticket(T0 + timedelta(hours=4), status=status, sla_status=SLAStatus.ON_TIME)

        assert recompute_sla(ticket, T0 + timedelta(days=30), self.policy) == SLAStatus.ON_TIME

    def test_pending_still_degrades(self):
        ticket = make_ticket(T0 + timedelta(hours=4), status=TicketStatus.PENDING)

        assert recompute_sla(ticket, T0 + timedelta(hours=5), self.policy) == SLAStatus.BREACHED


def test_worse_of():
    assert worse_of(SLAStatus.ON_TIME, SLAStatus.AT_RISK) == SLAStatus.AT_RISK
    assert worse_of(SLAStatus.BREACHED, SLAStatus.AT_RISK) == SLAStatus.BREACHED
    assert worse_of(SLAStatus.ON_TIME, SLAStatus.ON_TIME) == SLAStatus.ON_TIME
