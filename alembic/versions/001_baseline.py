"""Baseline: trips, enrollments and gamification progress tables.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Trips ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS trips (
            id VARCHAR(64) PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            location_name VARCHAR(200) NOT NULL DEFAULT '',
            difficulty VARCHAR(32) NOT NULL DEFAULT 'débutant',
            price INTEGER NOT NULL DEFAULT 0,
            max_participants INTEGER NOT NULL,
            participants_count INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'upcoming',
            starts_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_trips_seats CHECK (participants_count >= 0 AND participants_count <= max_participants)
        )
    """)

    # --- Enrollments ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS enrollments (
            id VARCHAR(36) PRIMARY KEY,
            trip_id VARCHAR(64) NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
            user_id VARCHAR(128) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            accepted_terms BOOLEAN NOT NULL DEFAULT false,
            dietary_preference VARCHAR(32),
            tshirt_size VARCHAR(8),
            needs_transport BOOLEAN NOT NULL DEFAULT false,
            transport_pickup_point VARCHAR(200),
            additional_questions TEXT,
            medical_info_confirmed BOOLEAN NOT NULL DEFAULT false,
            payment_method VARCHAR(16),
            payment_proof_url TEXT,
            transaction_number VARCHAR(64),
            total_amount INTEGER NOT NULL DEFAULT 0,
            reservation_number VARCHAR(32) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_enrollments_user_id
        ON enrollments(user_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_enrollments_trip_user
        ON enrollments(trip_id, user_id)
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_enrollments_active_trip_user
        ON enrollments(trip_id, user_id)
        WHERE status IN ('pending', 'confirmed')
    """)

    # --- User Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id VARCHAR(128) PRIMARY KEY,
            total_points BIGINT NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_active_on DATE,
            activities_completed INTEGER NOT NULL DEFAULT 0,
            challenges_completed INTEGER NOT NULL DEFAULT 0,
            survival_challenges_completed INTEGER NOT NULL DEFAULT 0,
            perfect_challenges INTEGER NOT NULL DEFAULT 0,
            photos_shared INTEGER NOT NULL DEFAULT 0,
            interactions_count INTEGER NOT NULL DEFAULT 0,
            help_provided_count INTEGER NOT NULL DEFAULT 0,
            eco_actions_count INTEGER NOT NULL DEFAULT 0,
            early_activities_count INTEGER NOT NULL DEFAULT 0,
            night_activities_count INTEGER NOT NULL DEFAULT 0,
            destinations_visited INTEGER NOT NULL DEFAULT 0,
            member_since TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL
        )
    """)

    # --- User Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL,
            badge_id VARCHAR(64) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_badges_user_id_badge_id_key UNIQUE (user_id, badge_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_badges_user_id
        ON user_badges(user_id)
    """)

    # --- Completed Trips ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_completed_trips (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL,
            trip_id VARCHAR(64) NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
            location_name VARCHAR(200) NOT NULL DEFAULT '',
            completed_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_completed_trips_user_id_trip_id_key UNIQUE (user_id, trip_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_completed_trips_user_id
        ON user_completed_trips(user_id)
    """)

    # --- Points Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS points_ledger (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL,
            action VARCHAR(32) NOT NULL,
            points INTEGER NOT NULL,
            source_id VARCHAR(128),
            idempotency_key VARCHAR(256) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_points_ledger_user_id
        ON points_ledger(user_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS points_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS user_completed_trips CASCADE")
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS enrollments CASCADE")
    op.execute("DROP TABLE IF EXISTS trips CASCADE")
