"""orders, staff and status events

Revision ID: 0001_orders_and_status_events
Revises: None
Create Date: 2026-10-17
"""

import sqlalchemy as sa
from alembic import op

from config import STORE_WRITE_ROLE, roles_from

revision: str = "0001_orders_and_status_events"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None

# Row-level security is Postgres only. The API connects as a role that does
# not own these tables, so the policies apply to it; migrations and the
# expiry job run as the owner. ``app.current_user_id`` is set per
# transaction by the repository layer.
_STAFF_OF = (
    "EXISTS (SELECT 1 FROM restaurant_staff s "
    "WHERE s.restaurant_id = {table}.restaurant_id "
    "AND s.user_id = current_setting('app.current_user_id', true)"
    "{role_clause})"
)
_EDITOR_ROLES = " AND s.role IN ({})".format(
    ", ".join(f"'{role}'" for role in roles_from(STORE_WRITE_ROLE))
)

_POLICIES = [
    ("restaurant_staff", "staff_self_select", "SELECT",
     "USING (user_id = current_setting('app.current_user_id', true))"),
    ("orders", "orders_staff_select", "SELECT",
     "USING (" + _STAFF_OF.format(table="orders", role_clause="") + ")"),
    ("orders", "orders_editor_update", "UPDATE",
     "USING (" + _STAFF_OF.format(table="orders", role_clause=_EDITOR_ROLES) + ")"),
    ("order_status_events", "events_staff_select", "SELECT",
     "USING (" + _STAFF_OF.format(table="order_status_events", role_clause="") + ")"),
    ("order_status_events", "events_editor_insert", "INSERT",
     "WITH CHECK ("
     + _STAFF_OF.format(table="order_status_events", role_clause=_EDITOR_ROLES)
     + ")"),
]


def upgrade() -> None:
    """Create the order tables and, on Postgres, their RLS policies."""

    op.create_table(
        "restaurants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )

    op.create_table(
        "restaurant_staff",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "restaurant_id",
            sa.String(36),
            sa.ForeignKey("restaurants.id"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.UniqueConstraint("restaurant_id", "user_id"),
    )
    op.create_index("ix_restaurant_staff_user_id", "restaurant_staff", ["user_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "restaurant_id",
            sa.String(36),
            sa.ForeignKey("restaurants.id"),
            nullable=False,
        ),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("order_code", sa.String(), nullable=True),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("customer", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'preparing', 'ready', "
            "'completed', 'cancelled', 'expired')",
            name="ck_orders_status",
        ),
    )
    op.create_index(
        "ix_orders_restaurant_created", "orders", ["restaurant_id", "created_at"]
    )

    op.create_table(
        "order_status_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "order_id", sa.String(36), sa.ForeignKey("orders.id"), nullable=False
        ),
        sa.Column("restaurant_id", sa.String(36), nullable=False),
        sa.Column("from_status", sa.String(), nullable=False),
        sa.Column("to_status", sa.String(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("changed_by", sa.String(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index(
        "ix_order_status_events_order_id", "order_status_events", ["order_id"]
    )
    op.create_index(
        "ix_order_status_events_restaurant_id",
        "order_status_events",
        ["restaurant_id"],
    )

    if op.get_bind().dialect.name != "postgresql":
        return

    for table in ("restaurant_staff", "orders", "order_status_events"):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
    for table, name, command, clause in _POLICIES:
        op.execute(f"CREATE POLICY {name} ON {table} FOR {command} {clause}")


def downgrade() -> None:
    """Drop the order tables."""

    if op.get_bind().dialect.name == "postgresql":
        for table, name, _command, _clause in _POLICIES:
            op.execute(f"DROP POLICY IF EXISTS {name} ON {table}")
    op.drop_table("order_status_events")
    op.drop_table("orders")
    op.drop_table("restaurant_staff")
    op.drop_table("restaurants")
