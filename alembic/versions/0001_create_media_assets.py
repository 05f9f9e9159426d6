"""create media_assets

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "media_assets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("object_key", sa.String(length=512), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(length=127), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("url", sa.String(length=1024), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("camera_make", sa.String(length=128), nullable=True),
        sa.Column("camera_model", sa.String(length=128), nullable=True),
        sa.Column("lens_model", sa.String(length=255), nullable=True),
        sa.Column("aperture", sa.String(length=32), nullable=True),
        sa.Column("shutter_speed", sa.String(length=32), nullable=True),
        sa.Column("iso", sa.String(length=32), nullable=True),
        sa.Column("focal_length", sa.String(length=32), nullable=True),
        sa.Column("datetime_original", sa.String(length=64), nullable=True),
        sa.Column("gps_lat", sa.Float(), nullable=True),
        sa.Column("gps_lon", sa.Float(), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("raw_metadata", sa.Text(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("alt", sa.String(length=255), nullable=True),
        sa.Column("visibility", sa.String(length=16), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "object_key", name="uq_media_assets_provider_object_key"),
    )
    op.create_index("ix_media_assets_content_hash", "media_assets", ["content_hash"], unique=True)
    op.create_index("ix_media_assets_provider", "media_assets", ["provider"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_media_assets_provider", table_name="media_assets")
    op.drop_index("ix_media_assets_content_hash", table_name="media_assets")
    op.drop_table("media_assets")
