"""Create events and unique_users tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- events (append-only log) ---
    op.create_table(
        "events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("event_type", sa.String(50), nullable=False, server_default="PageView"),
        sa.Column("host", sa.String(255), nullable=True),
        sa.Column("path", sa.Text(), nullable=True),
        sa.Column("full_url", sa.Text(), nullable=True),
        sa.Column("referrer", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("device_type", sa.String(20), nullable=True),
        sa.Column("ts", sa.BigInteger(), nullable=True),
        sa.Column(
            "product_data",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.Column("value", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency", sa.String(10), nullable=True),
        sa.Column("event_id", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ip_address", "events", ["ip_address"])
    op.create_index("ix_events_ts", "events", ["ts"])

    # --- unique_users (one row per ip + device) ---
    op.create_table(
        "unique_users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("device_type", sa.String(20), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("region", sa.String(100), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("district", sa.String(100), nullable=True),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=True),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=True),
        sa.Column(
            "first_seen",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "last_seen",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("visit_count", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("ip_address", "device_type", name="uq_unique_users_ip_device"),
    )
    op.create_index("ix_unique_users_ip_address", "unique_users", ["ip_address"])
    op.create_index("ix_unique_users_last_seen", "unique_users", ["last_seen"])


def downgrade() -> None:
    op.drop_index("ix_unique_users_last_seen", table_name="unique_users")
    op.drop_index("ix_unique_users_ip_address", table_name="unique_users")
    op.drop_table("unique_users")
    op.drop_index("ix_events_ts", table_name="events")
    op.drop_index("ix_events_ip_address", table_name="events")
    op.drop_index("ix_events_event_type", table_name="events")
    op.drop_table("events")
