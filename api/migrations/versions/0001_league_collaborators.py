"""league collaborator tables

Revision ID: 0001_league_collaborators
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_league_collaborators"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "League",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("rosterSize", sa.Integer(), nullable=True),
        sa.Column("createdAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
    )

    op.create_table(
        "Franchise",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("leagueId", sa.String(length=64), sa.ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("ownerName", sa.Text(), nullable=True),
        sa.Column("purse", sa.BigInteger(), server_default=sa.text("0"), nullable=False),
        sa.Column("createdAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
        sa.CheckConstraint('"purse" >= 0', name="ckFranchisePurseNonNegative"),
    )
    op.create_index("ix_Franchise_leagueId", "Franchise", ["leagueId"])

    op.create_table(
        "RosterEntry",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("franchiseId", sa.String(length=64), sa.ForeignKey("Franchise.id", ondelete="CASCADE"), nullable=False),
        sa.Column("playerRef", sa.Text(), nullable=False),
        sa.Column("playerName", sa.Text(), nullable=True),
        sa.Column("acquiredVia", sa.String(length=32), nullable=False),
        sa.Column("acquiredAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
        sa.Column("droppedAt", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_RosterEntry_franchiseId", "RosterEntry", ["franchiseId"])


def downgrade() -> None:
    op.drop_index("ix_RosterEntry_franchiseId", table_name="RosterEntry")
    op.drop_table("RosterEntry")
    op.drop_index("ix_Franchise_leagueId", table_name="Franchise")
    op.drop_table("Franchise")
    op.drop_table("League")
