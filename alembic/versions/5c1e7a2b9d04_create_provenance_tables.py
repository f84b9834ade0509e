"""create batches, products and chain_blocks

Revision ID: 5c1e7a2b9d04
Revises:
Create Date: 2026-10-17 10:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5c1e7a2b9d04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "batches",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("product_type", sa.String(length=128), nullable=False),
        sa.Column("harvest_date", sa.Date(), nullable=False),
        sa.Column("location", sa.String(length=256), nullable=False),
        sa.Column("responsible_staff", sa.String(length=256), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_batches_product_type", "batches", ["product_type"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column(
            "batch_id",
            sa.String(length=64),
            sa.ForeignKey("batches.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("size", sa.String(length=32), nullable=False),
        sa.Column("quality", sa.String(length=32), nullable=True),
        sa.Column("additional_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_products_batch", "products", ["batch_id"])

    op.create_table(
        "chain_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("entity_kind", sa.String(length=16), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor", sa.String(length=256), nullable=False),
        sa.Column("actor_role", sa.String(length=32), nullable=True),
        sa.Column("location", sa.String(length=256), nullable=False),
        sa.Column(
            "payload_json",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("prev_hash", sa.String(length=128), nullable=False),
        sa.Column("block_hash", sa.String(length=128), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("entity_kind", "entity_id", "seq", name="uq_chain_block_seq"),
        sa.UniqueConstraint("entity_kind", "entity_id", "prev_hash", name="uq_chain_block_prev"),
    )
    op.create_index("ix_chain_blocks_entity", "chain_blocks", ["entity_kind", "entity_id"])


def downgrade():
    op.drop_index("ix_chain_blocks_entity", table_name="chain_blocks")
    op.drop_table("chain_blocks")
    op.drop_index("ix_products_batch", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_batches_product_type", table_name="batches")
    op.drop_table("batches")
