"""initial ledger: users, transaction_header, transaction_detail

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2024-03-01 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLE = sa.Enum("SUPERUSER", "ADMIN", "INVENTORY_MANAGER", "GENERAL_USER", name="userrole")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=50), nullable=False, unique=True),
        sa.Column("email", sa.String(length=100), nullable=True, unique=True),
        sa.Column("full_name", sa.String(length=100), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
    )

    op.create_table(
        "transaction_header",
        sa.Column("transaction_id", sa.Uuid(), primary_key=True),
        sa.Column("transaction_type", sa.String(length=20), nullable=False),
        sa.Column("transaction_date", sa.DATE(), nullable=False),
        sa.Column("warehouse", sa.String(length=100), nullable=False),
        sa.Column("reference_type", sa.String(length=100), nullable=False),
        sa.Column("reference_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("shipment_carrier", sa.String(length=100), nullable=True),
        sa.Column("shipping_document", sa.String(length=100), nullable=True),
        sa.Column("customer_po", sa.String(length=100), nullable=True),
        sa.Column("customer_name", sa.String(length=200), nullable=True),
        sa.Column("comments", sa.String(), nullable=True),
        sa.Column(
            "related_transaction_id",
            sa.Uuid(),
            sa.ForeignKey("transaction_header.transaction_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index(
        "ix_transaction_header_warehouse_date", "transaction_header", ["warehouse", "transaction_date"]
    )

    op.create_table(
        "transaction_detail",
        sa.Column("detail_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Uuid(),
            sa.ForeignKey("transaction_header.transaction_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_name", sa.String(length=100), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("inventory_status", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("adjustment_direction", sa.String(length=10), nullable=False),
        sa.Column("lot_number", sa.String(length=100), nullable=True),
        sa.Column("comments", sa.String(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_transaction_detail_transaction_id", "transaction_detail", ["transaction_id"])
    op.create_index("ix_transaction_detail_item_name", "transaction_detail", ["item_name"])


def downgrade() -> None:
    op.drop_index("ix_transaction_detail_item_name", table_name="transaction_detail")
    op.drop_index("ix_transaction_detail_transaction_id", table_name="transaction_detail")
    op.drop_table("transaction_detail")
    op.drop_index("ix_transaction_header_warehouse_date", table_name="transaction_header")
    op.drop_table("transaction_header")
    op.drop_table("users")
    USER_ROLE.drop(op.get_bind(), checkfirst=True)
