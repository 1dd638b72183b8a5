"""Add thumbnail_data to photos

Revision ID: 20250615_002_add_thumbnail_data
Revises: 20250601_001_create_photos_table
Create Date: 2025-06-15
"""

from typing import Sequence, Union

from alembic import op


revision: str = "20250615_002_add_thumbnail_data"
down_revision: Union[str, None] = "20250601_001_create_photos_table"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("ALTER TABLE photos ADD COLUMN IF NOT EXISTS thumbnail_data TEXT")


def downgrade() -> None:
    op.execute("ALTER TABLE photos DROP COLUMN IF EXISTS thumbnail_data")
