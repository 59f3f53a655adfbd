"""baseline schema

Revision ID: 3f9a1c0d7b21
Revises: 
Create Date: 2026-10-18 09:12:44.514208

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy.engine import Connection

from questionair.database import Base
from questionair import models  # noqa: F401

# revision identifiers, used by Alembic.
revision: str = "3f9a1c0d7b21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table, index and constraint in the current metadata."""
    bind: Connection = op.get_bind()
    Base.metadata.create_all(bind)


def downgrade() -> None:
    bind: Connection = op.get_bind()
    Base.metadata.drop_all(bind)
