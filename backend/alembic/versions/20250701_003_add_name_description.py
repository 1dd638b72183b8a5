"""Add name and description to photos

Revision ID: 20250701_003_add_name_description
Revises: 20250615_002_add_thumbnail_data
Create Date: 2025-07-01
"""

from typing import Sequence, Union

from alembic import op


revision: str = "20250701_003_add_name_description"
down_revision: Union[str, None] = "20250615_002_add_thumbnail_data"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("ALTER TABLE photos ADD COLUMN IF NOT EXISTS name VARCHAR(255)")
    op.execute("ALTER TABLE photos ADD COLUMN IF NOT EXISTS description TEXT")
    op.execute("CREATE INDEX IF NOT EXISTS idx_photos_name ON photos (name)")
    # Full text search over descriptions
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_photos_description "
        "ON photos USING GIN (to_tsvector('english', description))"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_photos_description")
    op.execute("DROP INDEX IF EXISTS idx_photos_name")
    op.execute("ALTER TABLE photos DROP COLUMN IF EXISTS description")
    op.execute("ALTER TABLE photos DROP COLUMN IF EXISTS name")
