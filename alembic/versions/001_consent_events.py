"""consent_events table.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def upgrade() -> None:
    op.create_table(
        "consent_events",
        sa.Column("domain", sa.String(255), nullable=False, index=True),
        sa.Column("action", sa.String(50), nullable=False, comment="ConsentAction enum value"),
        sa.Column(
            "consent",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="essential/analytics/functional/marketing flags",
        ),
        sa.Column("version", sa.String(100)),
        sa.Column("region", sa.String(100)),
        sa.Column("language", sa.String(50)),
        sa.Column("consent_uid", sa.String(255), index=True),
        sa.Column("gpc", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source", sa.String(100)),
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("consent_events")
