"""initial schema: clients, staff tables, orders, quotations, sequence counters

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STAFF_TABLES = ("drivers", "supervisors", "storekeepers", "managers", "salesreps")
FLAGS = ("supervisoraccept", "storekeeperaccept", "manageraccept")


def _money(name: str, **kw) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, **kw)


def _staff_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("identity_ref", sa.String(128)),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("fcm_token", sa.String(512)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def _document_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("custom_id", sa.String(32), nullable=False, unique=True),
        sa.Column("username", sa.String(255), index=True),
        sa.Column(
            "client_id",
            sa.BigInteger(),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivery_type", sa.String(64), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("storekeeper_notes", sa.Text()),
        _money("total_price", server_default="0"),
        _money("total_vat", server_default="0"),
        _money("total_subtotal", server_default="0"),
        sa.Column("status", sa.String(32), nullable=False, server_default="not Delivered"),
        sa.Column("actual_delivery_date", sa.DateTime(timezone=True)),
        *[sa.Column(flag, sa.String(16), nullable=False, server_default="pending") for flag in FLAGS],
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *extra,
        *[sa.CheckConstraint(f"{flag} IN ('pending', 'accepted')", name=f"ck_{name}_{flag}") for flag in FLAGS],
    )


def _line_table(name: str, parent: str, fk: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(fk, sa.BigInteger(), sa.ForeignKey(f"{parent}.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("section", sa.String(128), nullable=False),
        sa.Column("type", sa.String(128), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("price"),
        _money("vat"),
        _money("subtotal"),
        sa.CheckConstraint("quantity > 0", name=f"ck_{name}_qty_pos"),
        sa.CheckConstraint("price >= 0", name=f"ck_{name}_price_nonneg"),
    )


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=False, index=True),
        sa.Column("client_type", sa.String(64), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("tax_number", sa.String(64)),
        sa.Column("branch_number", sa.String(64), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("street", sa.String(255)),
        sa.Column("city", sa.String(128)),
        sa.Column("region", sa.String(128)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    for table in STAFF_TABLES:
        _staff_table(table)

    _document_table("orders")
    _document_table(
        "quotations",
        sa.Column("supervisor_id", sa.BigInteger(), sa.ForeignKey("supervisors.id", ondelete="SET NULL")),
    )
    _line_table("order_products", "orders", "order_id")
    _line_table("quotation_products", "quotations", "quotation_id")

    op.create_table(
        "sequence_counters",
        sa.Column("prefix", sa.String(8), primary_key=True),
        sa.Column("year", sa.Integer(), primary_key=True),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("last_value >= 0", name="ck_sequence_counter_nonneg"),
    )


def downgrade() -> None:
    op.drop_table("sequence_counters")
    op.drop_table("quotation_products")
    op.drop_table("order_products")
    op.drop_table("quotations")
    op.drop_table("orders")
    for table in reversed(STAFF_TABLES):
        op.drop_table(table)
    op.drop_table("clients")
