"""Initial schema: users, events, seats, bookings, attendance_log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_STATUSES = ("UPCOMING", "ONGOING", "FINISHED", "CANCELLED")
BOOKING_STATUSES = ("BOOKED", "CHECKED_IN", "CHECKED_OUT", "CANCELLED")
ATTENDANCE_ACTIONS = ("CHECK_IN", "CHECK_OUT")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users: read-only mirror of the identity provider's directory
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="UPCOMING"),
        *_timestamps(),
        sa.CheckConstraint("start_time < end_time", name="check_event_time_window"),
        sa.CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        sa.CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in EVENT_STATUSES)),
            name="check_event_status",
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # The lifecycle scheduler scans by status every tick; keep it an index lookup.
    op.create_index("ix_events_status_start", "events", ["status", "start_time"])

    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("seat_row", sa.String(5), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("event_id", "seat_row", "seat_number", name="uq_seat_position"),
    )
    op.create_index("ix_seats_id", "seats", ["id"])
    op.create_index("ix_seats_event_id", "seats", ["event_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("qr_code_data", sa.String(500), nullable=False),
        sa.Column("qr_code_url", sa.String(2048), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="BOOKED"),
        sa.Column("booking_time", sa.DateTime(), nullable=False),
        sa.Column("check_in_time", sa.DateTime(), nullable=True),
        sa.Column("check_out_time", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.UniqueConstraint("token", name="uq_bookings_token"),
        sa.CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in BOOKING_STATUSES)),
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    op.create_index("ix_bookings_seat_id", "bookings", ["seat_id"])
    # ONE LIVE BOOKING PER USER PER EVENT: partial unique index.
    # Cancelled rows are kept for history and must not block a re-booking,
    # so a plain UNIQUE(event_id, user_id) would be wrong here.
    op.create_index(
        "uq_live_booking_per_user_event",
        "bookings",
        ["event_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status != 'CANCELLED'"),
        sqlite_where=sa.text("status != 'CANCELLED'"),
    )

    op.create_table(
        "attendance_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("auto_corrected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint(
            "action IN ({})".format(", ".join(f"'{a}'" for a in ATTENDANCE_ACTIONS)),
            name="check_attendance_action",
        ),
    )
    op.create_index("ix_attendance_log_id", "attendance_log", ["id"])
    op.create_index("ix_attendance_log_booking_id", "attendance_log", ["booking_id"])


def downgrade() -> None:
    op.drop_table("attendance_log")
    op.drop_table("bookings")
    op.drop_table("seats")
    op.drop_table("events")
    op.drop_table("users")
