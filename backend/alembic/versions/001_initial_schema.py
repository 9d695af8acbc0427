"""Initial schema: users, events, tickets, rooms, rentals, drivers, carpools.

Revision ID: 001
Revises: None
Create Date: 2026-10-16
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table (identity/role lookup only)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'student'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_date", "events", ["date"])

    # Tickets table. The QR token is recomputed, never stored.
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("unique_code", sa.String(64), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("unique_code", name="uq_tickets_unique_code"),
    )
    op.create_index("ix_tickets_id", "tickets", ["id"])
    op.create_index("ix_tickets_event_id", "tickets", ["event_id"])
    op.create_index("ix_tickets_user_id", "tickets", ["user_id"])

    # Rooms table
    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("room_info", sa.String(2000), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'enabled'")),
        sa.Column("availability_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("availability_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("amenities", sa.String(1000), nullable=False, server_default=sa.text("''")),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_room_capacity_positive"),
    )
    op.create_index("ix_rooms_id", "rooms", ["id"])
    op.create_index("ix_rooms_organizer_id", "rooms", ["organizer_id"])

    # Room rentals table
    op.create_table(
        "room_rentals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("renter_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("purpose", sa.String(1000), nullable=True),
        sa.Column("expected_attendees", sa.Integer(), nullable=True),
        sa.Column("total_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("admin_notes", sa.String(1000), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_time > start_time", name="check_rental_time_range"),
    )
    op.create_index("ix_room_rentals_id", "room_rentals", ["id"])
    op.create_index("ix_room_rentals_renter_id", "room_rentals", ["renter_id"])
    # Covers the overlap query: WHERE room_id = ? AND status IN (...) AND start_time < ?
    op.create_index(
        "ix_room_rentals_room_status_start", "room_rentals", ["room_id", "status", "start_time"]
    )

    # Drivers table
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("vehicle_type", sa.String(20), nullable=False),
        sa.Column("driver_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("license_plate", sa.String(20), nullable=True),
        sa.Column("accessibility_features", sa.String(500), nullable=False, server_default=sa.text("''")),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_driver_user"),
        sa.CheckConstraint("capacity >= 1 AND capacity <= 50", name="check_driver_capacity_range"),
    )
    op.create_index("ix_drivers_id", "drivers", ["id"])

    # Driver flag log (append-only)
    op.create_table(
        "driver_flags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer(), sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(1000), nullable=False, server_default=sa.text("''")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_driver_flags_id", "driver_flags", ["id"])
    op.create_index("ix_driver_flags_driver_id", "driver_flags", ["driver_id"])

    # Carpool offers table
    op.create_table(
        "carpool_offers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer(), sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("seats_available", sa.Integer(), nullable=False),
        sa.Column("departure_info", sa.String(500), nullable=False),
        sa.Column("departure_address", sa.String(500), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("seats_available >= 0", name="check_offer_seats_non_negative"),
        sa.CheckConstraint("seats_available <= total_seats", name="check_offer_seats_lte_total"),
        sa.CheckConstraint("total_seats > 0", name="check_offer_total_seats_positive"),
    )
    op.create_index("ix_carpool_offers_id", "carpool_offers", ["id"])
    op.create_index("ix_carpool_offers_driver_id", "carpool_offers", ["driver_id"])
    op.create_index("ix_carpool_offers_event_status", "carpool_offers", ["event_id", "status"])

    # Carpool passengers table
    op.create_table(
        "carpool_passengers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("offer_id", sa.Integer(), sa.ForeignKey("carpool_offers.id"), nullable=False),
        sa.Column("passenger_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("pickup_location", sa.String(500), nullable=True),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
    )
    op.create_index("ix_carpool_passengers_id", "carpool_passengers", ["id"])
    op.create_index("ix_carpool_passengers_passenger_id", "carpool_passengers", ["passenger_id"])
    op.create_index("ix_carpool_passengers_offer_status", "carpool_passengers", ["offer_id", "status"])


def downgrade() -> None:
    op.drop_table("carpool_passengers")
    op.drop_table("carpool_offers")
    op.drop_table("driver_flags")
    op.drop_table("drivers")
    op.drop_table("room_rentals")
    op.drop_table("rooms")
    op.drop_table("tickets")
    op.drop_table("events")
    op.drop_table("users")
