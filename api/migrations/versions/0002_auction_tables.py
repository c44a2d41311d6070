"""auction tables

Revision ID: 0002_auction_tables
Revises: 0001_league_collaborators
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_auction_tables"
down_revision = "0001_league_collaborators"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "AuctionRound",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("leagueId", sa.String(length=64), sa.ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
        sa.Column("roundNumber", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("isActive", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("isCompleted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("createdAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
        sa.UniqueConstraint("leagueId", "roundNumber", name="uqAuctionRoundNumber"),
    )

    op.create_table(
        "AuctionPlayer",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("leagueId", sa.String(length=64), sa.ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
        sa.Column("roundId", sa.String(length=64), sa.ForeignKey("AuctionRound.id", ondelete="CASCADE"), nullable=False),
        sa.Column("playerRef", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("team", sa.Text(), server_default="", nullable=False),
        sa.Column("position", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("basePrice", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
        sa.Column("orderIndex", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("soldToFranchiseId", sa.String(length=64), sa.ForeignKey("Franchise.id", ondelete="SET NULL"), nullable=True),
        sa.Column("soldForAmount", sa.BigInteger(), nullable=True),
        sa.Column("soldAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("createdAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'current', 'sold', 'unsold')", name="ckAuctionPlayerStatus"),
        sa.CheckConstraint('"basePrice" > 0', name="ckAuctionPlayerBasePrice"),
    )
    op.create_index("ixAuctionPlayerQueue", "AuctionPlayer", ["roundId", "status", "orderIndex"])
    # At most one player per league is up for bidding.
    op.create_index(
        "uqAuctionPlayerCurrent",
        "AuctionPlayer",
        ["leagueId"],
        unique=True,
        postgresql_where=sa.text("status = 'current'"),
        sqlite_where=sa.text("status = 'current'"),
    )

    op.create_table(
        "AuctionState",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("leagueId", sa.String(length=64), sa.ForeignKey("League.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("isActive", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("isPaused", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("currentPlayerId", sa.String(length=64), sa.ForeignKey("AuctionPlayer.id", ondelete="SET NULL"), nullable=True),
        sa.Column("currentBid", sa.BigInteger(), server_default=sa.text("0"), nullable=False),
        sa.Column("highestBidderFranchiseId", sa.String(length=64), sa.ForeignKey("Franchise.id", ondelete="SET NULL"), nullable=True),
        sa.Column("timerEndTime", sa.BigInteger(), nullable=True),
        sa.Column("pausedRemainingMs", sa.BigInteger(), nullable=True),
        sa.Column("currentRoundId", sa.String(length=64), sa.ForeignKey("AuctionRound.id", ondelete="SET NULL"), nullable=True),
        sa.Column("version", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("updatedAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
        sa.CheckConstraint(
            '("highestBidderFranchiseId" IS NULL AND "currentBid" = 0)'
            ' OR ("highestBidderFranchiseId" IS NOT NULL AND "currentBid" > 0)',
            name="ckAuctionStateBidder",
        ),
    )

    op.create_table(
        "AuctionLog",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("leagueId", sa.String(length=64), sa.ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
        sa.Column("roundId", sa.String(length=64), sa.ForeignKey("AuctionRound.id", ondelete="SET NULL"), nullable=True),
        sa.Column("logType", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("franchiseId", sa.String(length=64), sa.ForeignKey("Franchise.id", ondelete="SET NULL"), nullable=True),
        sa.Column("auctionPlayerId", sa.String(length=64), sa.ForeignKey("AuctionPlayer.id", ondelete="SET NULL"), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=True),
        sa.Column("loggedAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
    )
    op.create_index("ixAuctionLogLeague", "AuctionLog", ["leagueId", "id"])

    op.create_table(
        "UnsoldPlayer",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("leagueId", sa.String(length=64), sa.ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
        sa.Column("auctionPlayerId", sa.String(length=64), sa.ForeignKey("AuctionPlayer.id", ondelete="SET NULL"), nullable=True),
        sa.Column("originalRoundId", sa.String(length=64), sa.ForeignKey("AuctionRound.id", ondelete="SET NULL"), nullable=True),
        sa.Column("playerRef", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("team", sa.Text(), server_default="", nullable=False),
        sa.Column("position", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("basePrice", sa.BigInteger(), nullable=False),
        sa.Column("createdAt", sa.DateTime(timezone=True), server_default=sa.func.current_timestamp(), nullable=False),
    )
    op.create_index("ix_UnsoldPlayer_leagueId", "UnsoldPlayer", ["leagueId"])


def downgrade() -> None:
    op.drop_index("ix_UnsoldPlayer_leagueId", table_name="UnsoldPlayer")
    op.drop_table("UnsoldPlayer")
    op.drop_index("ixAuctionLogLeague", table_name="AuctionLog")
    op.drop_table("AuctionLog")
    op.drop_table("AuctionState")
    op.drop_index("uqAuctionPlayerCurrent", table_name="AuctionPlayer")
    op.drop_index("ixAuctionPlayerQueue", table_name="AuctionPlayer")
    op.drop_table("AuctionPlayer")
    op.drop_table("AuctionRound")
