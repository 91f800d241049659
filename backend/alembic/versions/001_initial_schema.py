"""Initial schema - users, alerts, tickets, notifications, system_config

Revision ID: 001
Revises:
Create Date: 2026-10-18

WHY: Creates the escalation data model in one step and seeds the SLA
budgets so they can be tuned at runtime without a deploy.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'userrole': ('ADMIN', 'MANAGER', 'ANALYST', 'OPS', 'VIEWER'),
    'alertcategory': (
        'POWER_CONSUMPTION_ANOMALY', 'BILLING_MISMATCH', 'SETTLEMENT_INVALID',
        'BACKUP_CRITICAL', 'BATTERY_LOW', 'OUTAGE_PREDICTED',
        'LICENSE_EXPIRED', 'MONITORING_MISMATCH',
    ),
    'alertseverity': ('CRITICAL', 'HIGH', 'MEDIUM', 'LOW', 'INFO'),
    'alertstatus': ('OPEN', 'ACKNOWLEDGED', 'RESOLVED', 'CLOSED'),
    'ticketstatus': (
        'OPEN', 'ASSIGNED', 'IN_PROGRESS', 'PENDING', 'RESOLVED', 'CLOSED', 'CANCELLED',
    ),
    'ticketpriority': ('CRITICAL', 'HIGH', 'MEDIUM', 'LOW'),
    'slastatus': ('ON_TIME', 'AT_RISK', 'BREACHED'),
    'tickethistoryaction': (
        'CREATED', 'STATUS_CHANGED', 'PRIORITY_CHANGED', 'ASSIGNED',
        'RESOLUTION_UPDATED', 'CATEGORY_CHANGED', 'TAGS_CHANGED',
        'COMMENT_ADDED', 'SLA_STATUS_CHANGED',
    ),
    'notificationtype': ('ALERT', 'TICKET_CREATED', 'TICKET_ASSIGNED', 'SLA_BREACHED'),
    'notificationchannel': ('IN_APP', 'EMAIL'),
    'notificationstatus': ('PENDING', 'SENT', 'FAILED', 'READ'),
}

SLA_DEFAULTS = (
    ('SLA_CRITICAL_HOURS', '4', 'SLA budget in hours for CRITICAL tickets'),
    ('SLA_HIGH_HOURS', '8', 'SLA budget in hours for HIGH tickets'),
    ('SLA_MEDIUM_HOURS', '24', 'SLA budget in hours for MEDIUM tickets'),
    ('SLA_LOW_HOURS', '72', 'SLA budget in hours for LOW tickets'),
)


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade() -> None:
    """
    Create all tables, enum types and indexes, then seed SLA config.

    WHY: tickets.alert_id is UNIQUE so a second escalation of the same
    alert fails at the database even when two requests race.
    """
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', _enum('userrole'), nullable=False, server_default='VIEWER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'alerts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category', _enum('alertcategory'), nullable=False),
        sa.Column('severity', _enum('alertseverity'), nullable=False),
        sa.Column('status', _enum('alertstatus'), nullable=False, server_default='OPEN'),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('detected_value', sa.Float(), nullable=True),
        sa.Column('expected_value', sa.Float(), nullable=True),
        sa.Column('threshold_value', sa.Float(), nullable=True),
        sa.Column('deviation_percent', sa.Float(), nullable=True),
        sa.Column('site_code', sa.String(length=100), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
        sa.Column('acknowledged_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_alerts_status', 'alerts', ['status'])
    op.create_index('ix_alerts_severity', 'alerts', ['severity'])
    op.create_index('ix_alerts_category', 'alerts', ['category'])
    op.create_index('ix_alerts_site_code', 'alerts', ['site_code'])
    op.create_index('ix_alerts_created_at', 'alerts', ['created_at'])

    op.create_table(
        'tickets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket_number', sa.String(length=32), nullable=False),
        sa.Column('alert_id', sa.Integer(), sa.ForeignKey('alerts.id'), nullable=True),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assigned_to_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', _enum('ticketstatus'), nullable=False, server_default='OPEN'),
        sa.Column('priority', _enum('ticketpriority'), nullable=False, server_default='MEDIUM'),
        sa.Column('category', _enum('alertcategory'), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('sla_deadline', sa.DateTime(), nullable=False),
        sa.Column('sla_status', _enum('slastatus'), nullable=False, server_default='ON_TIME'),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ticket_number', name='uq_tickets_ticket_number'),
        sa.UniqueConstraint('alert_id', name='uq_tickets_alert_id'),
    )
    op.create_index('ix_tickets_status', 'tickets', ['status'])
    op.create_index('ix_tickets_priority', 'tickets', ['priority'])
    op.create_index('ix_tickets_sla_status', 'tickets', ['sla_status'])
    op.create_index('ix_tickets_sla_deadline', 'tickets', ['sla_deadline'])
    op.create_index('ix_tickets_assigned_to', 'tickets', ['assigned_to_id'])
    op.create_index('ix_tickets_created_at', 'tickets', ['created_at'])

    op.create_table(
        'ticket_comments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ticket_comments_ticket_id', 'ticket_comments', ['ticket_id'])
    op.create_index('ix_ticket_comments_user_id', 'ticket_comments', ['user_id'])

    op.create_table(
        'ticket_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', _enum('tickethistoryaction'), nullable=False),
        sa.Column('field_name', sa.String(length=50), nullable=True),
        sa.Column('old_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ticket_history_ticket_id', 'ticket_history', ['ticket_id'])

    # One row per YYYYMM; incremented under a row lock when numbering tickets
    op.create_table(
        'ticket_sequences',
        sa.Column('period', sa.String(length=6), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('period'),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', _enum('notificationtype'), nullable=False),
        sa.Column('channel', _enum('notificationchannel'), nullable=False, server_default='IN_APP'),
        sa.Column('status', _enum('notificationstatus'), nullable=False, server_default='PENDING'),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('alert_id', sa.Integer(), sa.ForeignKey('alerts.id'), nullable=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id'), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_status', 'notifications', ['status'])

    system_config = op.create_table(
        'system_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key', name='uq_system_config_key'),
    )

    op.bulk_insert(
        system_config,
        [
            {'key': key, 'value': value, 'description': description, 'category': 'TICKET'}
            for key, value, description in SLA_DEFAULTS
        ],
    )


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    for table in (
        'system_config',
        'notifications',
        'ticket_sequences',
        'ticket_history',
        'ticket_comments',
        'tickets',
        'alerts',
        'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
