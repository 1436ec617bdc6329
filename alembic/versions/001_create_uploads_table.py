"""Create uploads table

Revision ID: 001
Revises:
Create Date: 2026-10-18

Adds the uploads table:
- hash is the content-derived identity; its unique constraint is the
  duplicate detector for concurrent identical submissions
- files holds "filename/attachment-key" entries in submission order
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the uploads table."""
    op.create_table(
        'uploads',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True, autoincrement=True),
        sa.Column('hash', sa.CHAR(40), nullable=False, unique=True),
        sa.Column('body', sa.Text, nullable=True),
        sa.Column('files', postgresql.ARRAY(sa.Text).with_variant(sa.JSON(), 'sqlite'), nullable=False),
        sa.Column('timestamp', sa.BigInteger, nullable=False),
    )


def downgrade() -> None:
    """Drop the uploads table."""
    op.drop_table('uploads')
