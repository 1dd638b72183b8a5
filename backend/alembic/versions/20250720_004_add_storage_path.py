"""Add storage_path for originals kept in object storage

Revision ID: 20250720_004_add_storage_path
Revises: 20250701_003_add_name_description
Create Date: 2025-07-20
"""

from typing import Sequence, Union

from alembic import op


revision: str = "20250720_004_add_storage_path"
down_revision: Union[str, None] = "20250701_003_add_name_description"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("ALTER TABLE photos ADD COLUMN IF NOT EXISTS storage_path VARCHAR(500)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_photos_storage_path ON photos (storage_path)")
    op.execute(
        "COMMENT ON COLUMN photos.storage_path IS "
        "'Key of the original image in the original-images bucket'"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_photos_storage_path")
    op.execute("ALTER TABLE photos DROP COLUMN IF EXISTS storage_path")
