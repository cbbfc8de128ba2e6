"""create bundles

Revision ID: 0001_create_bundles
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

revision = "0001_create_bundles"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "bundles",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("channel", sa.String(length=120), nullable=False, server_default="production"),
        sa.Column("platform", sa.Enum("ios", "android", name="bundleplatform"), nullable=False),
        sa.Column("target_app_version", sa.String(length=60), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("should_force_update", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("file_hash", sa.String(length=128), nullable=True),
        sa.Column("git_commit_hash", sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bundles_channel", "bundles", ["channel"])


def downgrade() -> None:
    op.drop_index("ix_bundles_channel", table_name="bundles")
    op.drop_table("bundles")
    sa.Enum(name="bundleplatform").drop(op.get_bind(), checkfirst=True)
