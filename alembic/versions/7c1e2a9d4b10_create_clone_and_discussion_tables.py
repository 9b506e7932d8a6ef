"""create schools, users, clones and discussion tables

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-17 10:12:41.201337

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e2a9d4b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "schools",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
    )
    op.create_index("ix_schools_id", "schools", ["id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("school_id", sa.Integer(), sa.ForeignKey("schools.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_school_id", "users", ["school_id"])

    op.create_table(
        "clones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("clone_name", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("status", sa.String(100), nullable=True),
        sa.Column("assigned_to_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("analysis", sa.Text(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_clones_id", "clones", ["id"])
    op.create_index("ix_clones_status", "clones", ["status"])
    op.create_index("ix_clones_assigned_to_id", "clones", ["assigned_to_id"])

    op.create_table(
        "discussions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("clone_id", sa.Integer(), sa.ForeignKey("clones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("last_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_discussions_id", "discussions", ["id"])
    op.create_index("ix_discussions_student_id", "discussions", ["student_id"])
    op.create_index("ix_discussions_clone_id", "discussions", ["clone_id"])

    op.create_table(
        "discussion_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("discussion_id", sa.Integer(), sa.ForeignKey("discussions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sender_side", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("discussion_id", "seq", name="uq_discussion_message_seq"),
    )
    op.create_index("ix_discussion_messages_id", "discussion_messages", ["id"])
    op.create_index("ix_discussion_messages_discussion_id", "discussion_messages", ["discussion_id"])

    op.create_table(
        "discussion_read_states",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("discussion_id", sa.Integer(), sa.ForeignKey("discussions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("side", sa.String(20), nullable=False),
        sa.Column("unread_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_read_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("discussion_id", "side", name="uq_discussion_read_state_side"),
        sa.CheckConstraint("unread_count >= 0", name="ck_discussion_read_state_unread"),
    )
    op.create_index("ix_discussion_read_states_id", "discussion_read_states", ["id"])
    op.create_index("ix_discussion_read_states_discussion_id", "discussion_read_states", ["discussion_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("discussion_read_states")
    op.drop_table("discussion_messages")
    op.drop_table("discussions")
    op.drop_table("clones")
    op.drop_table("users")
    op.drop_table("schools")
