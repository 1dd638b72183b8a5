"""Track the uploading user on photos

Revision ID: 20250805_005_add_photo_owner
Revises: 20250720_004_add_storage_path
Create Date: 2025-08-05
"""

from typing import Sequence, Union

from alembic import op


revision: str = "20250805_005_add_photo_owner"
down_revision: Union[str, None] = "20250720_004_add_storage_path"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("ALTER TABLE photos ADD COLUMN IF NOT EXISTS user_id VARCHAR(36) REFERENCES users(id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_photos_user_id ON photos (user_id)")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_photos_user_id")
    op.execute("ALTER TABLE photos DROP COLUMN IF EXISTS user_id")
