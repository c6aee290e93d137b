"""initial schema - warehouses, zones, inquiries

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17

For EXISTING databases created by the admin tool: run `alembic stamp 001_initial`.
For NEW databases: run `alembic upgrade head`.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "warehouses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("address", sa.String(255)),
        sa.Column("suburb", sa.String(100)),
        sa.Column("state", sa.String(50)),
        sa.Column("postcode", sa.String(10)),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("shopify_location_id", sa.BigInteger()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_warehouses_status"),
    )
    op.create_index("ix_warehouses_status", "warehouses", ["status"])

    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "warehouse_id",
            sa.Integer(),
            sa.ForeignKey("warehouses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("postcode", sa.String(10), nullable=False),
        sa.Column("prefix", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("note", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_zones_postcode", "zones", ["postcode"])
    op.create_index("ix_zones_warehouse", "zones", ["warehouse_id"])

    op.create_table(
        "inquiries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_name", sa.String(150)),
        sa.Column("email", sa.String(200)),
        sa.Column("phone", sa.String(50)),
        sa.Column("address", sa.Text()),
        sa.Column("postcode", sa.String(10)),
        sa.Column("product_details", sa.Text()),
        sa.Column("external_order_id", sa.String(64)),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('new', 'reviewed', 'closed')", name="ck_inquiries_status"
        ),
    )
    op.create_index("ix_inquiries_status", "inquiries", ["status"])
    op.create_index("ix_inquiries_postcode", "inquiries", ["postcode"])
    op.create_index(
        "ix_inquiries_email_status_created", "inquiries", ["email", "status", "created_at"]
    )


def downgrade() -> None:
    """Drop all tables. ⚠️ DESTRUCTIVE — only for dev/test environments."""
    op.drop_table("inquiries")
    op.drop_table("zones")
    op.drop_table("warehouses")
