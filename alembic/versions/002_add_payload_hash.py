"""Add payload_hash dedup column with unique constraint.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

The API keeps working against revision 001: inserts that hit the missing
column are retried without it.
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def upgrade() -> None:
    op.add_column("consent_events", sa.Column("payload_hash", sa.String(64)))
    op.create_unique_constraint("consent_events_payload_hash_key", "consent_events", ["payload_hash"])


def downgrade() -> None:
    op.drop_constraint("consent_events_payload_hash_key", "consent_events", type_="unique")
    op.drop_column("consent_events", "payload_hash")
