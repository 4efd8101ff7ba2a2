"""create collections schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=False)

    op.create_table(
        "attachments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("uuid", sa.String(), nullable=False),
        sa.Column("context", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=True),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("file_size_bytes", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("uuid"),
    )

    op.create_table(
        "collections",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("visibility", sa.String(), nullable=False),
        sa.Column("workflow_state", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_collections_user_id"), "collections", ["user_id"], unique=False)
    op.create_index(op.f("ix_collections_workflow_state"), "collections", ["workflow_state"], unique=False)
    op.create_index(op.f("ix_collections_created_at"), "collections", ["created_at"], unique=False)

    op.create_table(
        "collection_item_datas",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("link_url", sa.String(), nullable=False),
        sa.Column("item_type", sa.String(), nullable=False),
        sa.Column("post_count", sa.Integer(), nullable=False),
        sa.Column("upvote_count", sa.Integer(), nullable=False),
        sa.Column("root_item_id", sa.String(), nullable=True),
        sa.Column("image_attachment_id", sa.String(), nullable=True),
        sa.Column("image_pending", sa.Boolean(), nullable=False),
        sa.Column("html_preview", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["image_attachment_id"], ["attachments.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_collection_item_datas_link_url"), "collection_item_datas", ["link_url"], unique=True)
    op.create_index(op.f("ix_collection_item_datas_root_item_id"), "collection_item_datas", ["root_item_id"], unique=False)
    op.create_index(op.f("ix_collection_item_datas_image_pending"), "collection_item_datas", ["image_pending"], unique=False)

    op.create_table(
        "collection_items",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("collection_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("collection_item_data_id", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("workflow_state", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["collection_id"], ["collections.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["collection_item_data_id"], ["collection_item_datas.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_collection_items_collection_id"), "collection_items", ["collection_id"], unique=False)
    op.create_index(op.f("ix_collection_items_user_id"), "collection_items", ["user_id"], unique=False)
    op.create_index(
        op.f("ix_collection_items_collection_item_data_id"),
        "collection_items",
        ["collection_item_data_id"],
        unique=False,
    )
    op.create_index(op.f("ix_collection_items_workflow_state"), "collection_items", ["workflow_state"], unique=False)
    op.create_index(op.f("ix_collection_items_created_at"), "collection_items", ["created_at"], unique=False)

    op.create_table(
        "collection_item_upvotes",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("collection_item_data_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["collection_item_data_id"], ["collection_item_datas.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("collection_item_data_id", "user_id", name="uq_collection_item_upvotes_data_user"),
    )
    op.create_index(
        op.f("ix_collection_item_upvotes_collection_item_data_id"),
        "collection_item_upvotes",
        ["collection_item_data_id"],
        unique=False,
    )
    op.create_index(op.f("ix_collection_item_upvotes_user_id"), "collection_item_upvotes", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_table("collection_item_upvotes")
    op.drop_table("collection_items")
    op.drop_table("collection_item_datas")
    op.drop_table("collections")
    op.drop_table("attachments")
    op.drop_table("users")
