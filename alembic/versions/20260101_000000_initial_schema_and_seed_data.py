"""Initial schema and seed data for OmniCRM

Revision ID: 20260101_000000
Revises: None
Create Date: 2026-01-01 00:00:00.000000

This is the initial migration that creates all necessary tables and seeds default data
for the OmniCRM server. This includes:
- Contact tables (contacts, notes)
- OmniMomentum tables (zones, projects, tasks, task contact tags, inbox items)
- Onboarding tables (tokens, client profiles, client consents)
- Google integration and sync tables (integrations, sync prefs, raw events, errors, sync sessions)
- Default zones

Revision format: YYYYMMDD_HHMMSS_description

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20260101_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    """Create all tables and seed initial data."""

    # Create contacts table
    op.create_table(
        "contacts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("primary_email", sa.String(320), nullable=True),
        sa.Column("primary_phone", sa.String(50), nullable=True),
        sa.Column("source", sa.String(32), nullable=True),
        sa.Column("lifecycle_stage", sa.String(32), nullable=True),
        sa.Column("tags", JSON_TYPE, nullable=False, server_default="[]"),
        sa.Column("confidence_score", sa.String(16), nullable=True),
        sa.Column("slug", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_contacts_user_id", "user_id"),
        sa.Index("ix_contacts_primary_email", "primary_email"),
        sa.Index("ix_contacts_created_at", "created_at"),
    )

    # Create notes table
    op.create_table(
        "notes",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("contact_id", sa.String(36), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
        sa.Index("ix_notes_user_id", "user_id"),
        sa.Index("ix_notes_contact_id", "contact_id"),
        sa.Index("ix_notes_created_at", "created_at"),
    )

    # Create zones table
    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("color", sa.String(7), nullable=True),
        sa.Column("icon_name", sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # Create projects table
    op.create_table(
        "projects",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("zone_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("details", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["zone_id"], ["zones.id"]),
        sa.Index("ix_projects_user_id", "user_id"),
        sa.Index("ix_projects_zone_id", "zone_id"),
        sa.Index("ix_projects_status", "status"),
        sa.Index("ix_projects_created_at", "created_at"),
    )

    # Create tasks table
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("project_id", sa.String(36), nullable=True),
        sa.Column("parent_task_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="todo"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("details", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.ForeignKeyConstraint(["parent_task_id"], ["tasks.id"]),
        sa.Index("ix_tasks_user_id", "user_id"),
        sa.Index("ix_tasks_project_id", "project_id"),
        sa.Index("ix_tasks_parent_task_id", "parent_task_id"),
        sa.Index("ix_tasks_status", "status"),
        sa.Index("ix_tasks_due_date", "due_date"),
        sa.Index("ix_tasks_created_at", "created_at"),
    )

    # Create task_contact_tags table
    op.create_table(
        "task_contact_tags",
        sa.Column("task_id", sa.String(36), nullable=False),
        sa.Column("contact_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("task_id", "contact_id"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"]),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"]),
    )

    # Create inbox_items table
    op.create_table(
        "inbox_items",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("raw_text", sa.Text(), nullable=False),
        sa.Column("raw_text_hash", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="unprocessed"),
        sa.Column("created_task_id", sa.String(36), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("details", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_task_id"], ["tasks.id"]),
        sa.Index("ix_inbox_items_user_id", "user_id"),
        sa.Index("ix_inbox_items_status", "status"),
        sa.Index("ix_inbox_items_created_at", "created_at"),
    )

    # Create onboarding_tokens table
    op.create_table(
        "onboarding_tokens",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_onboarding_tokens_user_id", "user_id"),
        sa.Index("ix_onboarding_tokens_token", "token", unique=True),
    )

    # Create client_profiles table
    op.create_table(
        "client_profiles",
        sa.Column("contact_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("emergency_contact_name", sa.String(255), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(50), nullable=True),
        sa.Column("referral_source", sa.String(255), nullable=True),
        sa.Column("address", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("health_context", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("preferences", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("photo_path", sa.String(1024), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("contact_id"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"]),
        sa.Index("ix_client_profiles_user_id", "user_id"),
    )

    # Create client_consents table
    op.create_table(
        "client_consents",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("contact_id", sa.String(36), nullable=False),
        sa.Column("consent_type", sa.String(32), nullable=False, server_default="data_processing"),
        sa.Column("consent_text_version", sa.String(50), nullable=False),
        sa.Column("granted", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("granted_at", sa.DateTime(), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(1024), nullable=True),
        sa.Column("signature_svg", sa.Text(), nullable=True),
        sa.Column("signature_image_url", sa.String(1024), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"]),
        sa.Index("ix_client_consents_user_id", "user_id"),
        sa.Index("ix_client_consents_contact_id", "contact_id"),
    )

    # Create user_integrations table
    op.create_table(
        "user_integrations",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("provider", sa.String(32), nullable=False, server_default="google"),
        sa.Column("service", sa.String(32), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("expiry_date", sa.DateTime(), nullable=True),
        sa.Column("scope", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "provider", "service"),
    )

    # Create user_sync_prefs table
    op.create_table(
        "user_sync_prefs",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("gmail_query", sa.Text(), nullable=False),
        sa.Column("gmail_label_includes", JSON_TYPE, nullable=False, server_default="[]"),
        sa.Column("gmail_label_excludes", JSON_TYPE, nullable=False, server_default="[]"),
        sa.Column("gmail_time_range_days", sa.Integer(), nullable=False, server_default="365"),
        sa.Column("calendar_include_organizer_self", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("calendar_include_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("calendar_time_window_days", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("calendar_future_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("calendar_ids", JSON_TYPE, nullable=False, server_default='["primary"]'),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # Create raw_events table
    op.create_table(
        "raw_events",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("payload", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("contact_id", sa.String(36), nullable=True),
        sa.Column("batch_id", sa.String(36), nullable=True),
        sa.Column("source_meta", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("source_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"]),
        sa.UniqueConstraint("user_id", "provider", "source_id", name="uq_raw_events_user_provider_source"),
        sa.Index("ix_raw_events_user_id", "user_id"),
        sa.Index("ix_raw_events_provider", "provider"),
        sa.Index("ix_raw_events_occurred_at", "occurred_at"),
        sa.Index("ix_raw_events_contact_id", "contact_id"),
        sa.Index("ix_raw_events_batch_id", "batch_id"),
        sa.Index("ix_raw_events_created_at", "created_at"),
    )

    # Create raw_event_errors table
    op.create_table(
        "raw_event_errors",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("raw_event_id", sa.String(36), nullable=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("stage", sa.String(32), nullable=False),
        sa.Column("error", sa.Text(), nullable=False),
        sa.Column("context", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("error_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_raw_event_errors_user_id", "user_id"),
        sa.Index("ix_raw_event_errors_error_at", "error_at"),
    )

    # Create sync_sessions table
    op.create_table(
        "sync_sessions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("service", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="started"),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_step", sa.String(255), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("imported_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicate_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("preferences", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("error_details", JSON_TYPE, nullable=False, server_default="{}"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_sync_sessions_user_id", "user_id"),
        sa.Index("ix_sync_sessions_started_at", "started_at"),
    )

    # Seed default zones
    default_zones = [
        ("Personal Wellness", "#6366F1", "heart"),
        ("Self Care", "#8B5CF6", "sparkles"),
        ("Admin & Finances", "#EF4444", "briefcase"),
        ("Business Development", "#F97316", "trending-up"),
        ("Social Media & Marketing", "#EC4899", "share"),
        ("Client Care", "#06B6D4", "users"),
    ]

    for name, color, icon_name in default_zones:
        op.execute(f"INSERT INTO zones (name, color, icon_name) VALUES ('{name}', '{color}', '{icon_name}')")


def downgrade() -> None:
    """Drop all tables created in upgrade."""
    op.drop_table("sync_sessions")
    op.drop_table("raw_event_errors")
    op.drop_table("raw_events")
    op.drop_table("user_sync_prefs")
    op.drop_table("user_integrations")
    op.drop_table("client_consents")
    op.drop_table("client_profiles")
    op.drop_table("onboarding_tokens")
    op.drop_table("inbox_items")
    op.drop_table("task_contact_tags")
    op.drop_table("tasks")
    op.drop_table("projects")
    op.drop_table("zones")
    op.drop_table("notes")
    op.drop_table("contacts")
