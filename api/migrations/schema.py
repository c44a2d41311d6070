# migrations/schema.py
"""
Table definitions for the auction engine and the league collaborator tables
it reads and writes (League, Franchise, RosterEntry). This is the
autogenerate target for Alembic; the revisions under versions/ create it.

Identifiers are quoted CamelCase so the raw SQL in the models reads the same
on Postgres and SQLite.
"""
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    false,
    func,
    text,
)

metadata = MetaData()

ID = String(64)


League = Table(
    "League",
    metadata,
    Column("id", ID, primary_key=True),
    Column("name", Text, nullable=False),
    Column("rosterSize", Integer, nullable=True),
    Column("createdAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
)

Franchise = Table(
    "Franchise",
    metadata,
    Column("id", ID, primary_key=True),
    Column("leagueId", ID, ForeignKey("League.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("name", Text, nullable=False),
    Column("ownerName", Text, nullable=True),
    Column("purse", BigInteger, nullable=False, server_default=text("0")),
    Column("createdAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
    CheckConstraint('"purse" >= 0', name="ckFranchisePurseNonNegative"),
)

RosterEntry = Table(
    "RosterEntry",
    metadata,
    Column("id", ID, primary_key=True),
    Column("franchiseId", ID, ForeignKey("Franchise.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("playerRef", Text, nullable=False),
    Column("playerName", Text, nullable=True),
    Column("acquiredVia", String(32), nullable=False),  # auction | draft | free_agency | trade
    Column("acquiredAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
    Column("droppedAt", DateTime(timezone=True), nullable=True),
)

AuctionRound = Table(
    "AuctionRound",
    metadata,
    Column("id", ID, primary_key=True),
    Column("leagueId", ID, ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
    Column("roundNumber", Integer, nullable=False),
    Column("name", Text, nullable=False),
    Column("isActive", Boolean, nullable=False, server_default=false()),
    Column("isCompleted", Boolean, nullable=False, server_default=false()),
    Column("createdAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("leagueId", "roundNumber", name="uqAuctionRoundNumber"),
)

AuctionPlayer = Table(
    "AuctionPlayer",
    metadata,
    Column("id", ID, primary_key=True),
    Column("leagueId", ID, ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
    Column("roundId", ID, ForeignKey("AuctionRound.id", ondelete="CASCADE"), nullable=False),
    # Snapshot of the player identity, copied at queue-creation time.
    Column("playerRef", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("team", Text, nullable=False, server_default=""),
    Column("position", Text, nullable=True),
    Column("category", Text, nullable=True),
    Column("basePrice", BigInteger, nullable=False),
    Column("status", String(16), nullable=False, server_default="pending"),
    Column("orderIndex", Integer, nullable=False, server_default=text("0")),
    Column("soldToFranchiseId", ID, ForeignKey("Franchise.id", ondelete="SET NULL"), nullable=True),
    Column("soldForAmount", BigInteger, nullable=True),
    Column("soldAt", DateTime(timezone=True), nullable=True),
    Column("createdAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
    CheckConstraint(
        "status IN ('pending', 'current', 'sold', 'unsold')",
        name="ckAuctionPlayerStatus",
    ),
    CheckConstraint('"basePrice" > 0', name="ckAuctionPlayerBasePrice"),
    Index("ixAuctionPlayerQueue", "roundId", "status", "orderIndex"),
    # At most one player per league is up for bidding.
    Index(
        "uqAuctionPlayerCurrent",
        "leagueId",
        unique=True,
        postgresql_where=text("status = 'current'"),
        sqlite_where=text("status = 'current'"),
    ),
)

AuctionState = Table(
    "AuctionState",
    metadata,
    Column("id", ID, primary_key=True),
    Column("leagueId", ID, ForeignKey("League.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("isActive", Boolean, nullable=False, server_default=false()),
    Column("isPaused", Boolean, nullable=False, server_default=false()),
    Column("currentPlayerId", ID, ForeignKey("AuctionPlayer.id", ondelete="SET NULL"), nullable=True),
    Column("currentBid", BigInteger, nullable=False, server_default=text("0")),
    Column("highestBidderFranchiseId", ID, ForeignKey("Franchise.id", ondelete="SET NULL"), nullable=True),
    Column("timerEndTime", BigInteger, nullable=True),  # epoch ms
    Column("pausedRemainingMs", BigInteger, nullable=True),
    Column("currentRoundId", ID, ForeignKey("AuctionRound.id", ondelete="SET NULL"), nullable=True),
    Column("version", Integer, nullable=False, server_default=text("0")),
    Column("updatedAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
    CheckConstraint(
        '("highestBidderFranchiseId" IS NULL AND "currentBid" = 0)'
        ' OR ("highestBidderFranchiseId" IS NOT NULL AND "currentBid" > 0)',
        name="ckAuctionStateBidder",
    ),
)

AuctionLog = Table(
    "AuctionLog",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("leagueId", ID, ForeignKey("League.id", ondelete="CASCADE"), nullable=False),
    Column("roundId", ID, ForeignKey("AuctionRound.id", ondelete="SET NULL"), nullable=True),
    Column("logType", String(32), nullable=False),
    Column("message", Text, nullable=False),
    Column("franchiseId", ID, ForeignKey("Franchise.id", ondelete="SET NULL"), nullable=True),
    Column("auctionPlayerId", ID, ForeignKey("AuctionPlayer.id", ondelete="SET NULL"), nullable=True),
    Column("amount", BigInteger, nullable=True),
    Column("loggedAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
    Index("ixAuctionLogLeague", "leagueId", "id"),
)

UnsoldPlayer = Table(
    "UnsoldPlayer",
    metadata,
    Column("id", ID, primary_key=True),
    Column("leagueId", ID, ForeignKey("League.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("auctionPlayerId", ID, ForeignKey("AuctionPlayer.id", ondelete="SET NULL"), nullable=True),
    Column("originalRoundId", ID, ForeignKey("AuctionRound.id", ondelete="SET NULL"), nullable=True),
    Column("playerRef", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("team", Text, nullable=False, server_default=""),
    Column("position", Text, nullable=True),
    Column("category", Text, nullable=True),
    Column("basePrice", BigInteger, nullable=False),
    Column("createdAt", DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()),
)
