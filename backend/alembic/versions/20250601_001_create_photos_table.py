"""
Create users and photos tables

Revision ID: 20250601_001_create_photos_table
Revises:
Create Date: 2025-06-01 10:00:00.000000
"""

from alembic import op

revision = '20250601_001_create_photos_table'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute(r'''
    CREATE TABLE IF NOT EXISTS users (
      id VARCHAR(36) PRIMARY KEY,
      email VARCHAR(255) NOT NULL UNIQUE,
      password_hash VARCHAR(255),
      is_admin BOOLEAN NOT NULL DEFAULT FALSE,
      created_at TIMESTAMPTZ DEFAULT now(),
      updated_at TIMESTAMPTZ
    )
    ''')

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS photos (
      id BIGSERIAL PRIMARY KEY,
      lat DECIMAL(10, 8) NOT NULL,
      lng DECIMAL(11, 8) NOT NULL,
      image_data TEXT,
      timestamp TIMESTAMPTZ NOT NULL,
      filename VARCHAR(255),
      type VARCHAR(100),
      created_at TIMESTAMPTZ DEFAULT now(),
      updated_at TIMESTAMPTZ DEFAULT now()
    )
    ''')

    op.execute("CREATE INDEX IF NOT EXISTS idx_photos_coordinates ON photos (lat, lng)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_photos_timestamp ON photos (timestamp)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_photos_type ON photos (type)")

    # Keep updated_at current for writes that bypass the application
    op.execute(r'''
    CREATE OR REPLACE FUNCTION update_updated_at_column()
    RETURNS TRIGGER AS $$
    BEGIN
      NEW.updated_at = now();
      RETURN NEW;
    END;
    $$ language 'plpgsql'
    ''')
    op.execute(r'''
    CREATE TRIGGER update_photos_updated_at
      BEFORE UPDATE ON photos
      FOR EACH ROW
      EXECUTE FUNCTION update_updated_at_column()
    ''')


def downgrade():
    op.execute('DROP TRIGGER IF EXISTS update_photos_updated_at ON photos;')
    op.execute('DROP FUNCTION IF EXISTS update_updated_at_column();')
    op.execute('DROP TABLE IF EXISTS photos CASCADE;')
    op.execute('DROP TABLE IF EXISTS users CASCADE;')
