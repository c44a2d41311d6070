# endpoints/auction/auctionQueryModel.py
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from config import settings as app_settings
from endpoints.auction.auctionStore import AuctionStore
from endpoints.auction.auctionTypes import (
    PLAYER_STATUSES,
    STATUS_PENDING,
    STATUS_SOLD,
)
from endpoints.auction.pricingPolicy import PricingPolicy
from utils.clock import now_ms

MAX_LOG_LIMIT = 500


class AuctionQueryModel:
    """Read side: assembles what the auction room screens display."""

    def __init__(self, db: Engine, settings=None, pricing: Optional[PricingPolicy] = None, clock=None):
        self.db = db
        self.settings = settings or app_settings
        self.pricing = pricing or PricingPolicy.from_settings(self.settings)
        self.clock = clock or now_ms
        self.store = AuctionStore(db)

    def _franchises(self, conn, league_id: str) -> List[Dict[str, Any]]:
        rows = conn.execute(
            text("""
                SELECT
                    f.id,
                    f.name,
                    f."ownerName",
                    f.purse,
                    COUNT(r.id) AS "rosterCount"
                FROM "Franchise" f
                LEFT JOIN "RosterEntry" r
                  ON r."franchiseId" = f.id
                 AND r."droppedAt" IS NULL
                WHERE f."leagueId" = :leagueId
                GROUP BY f.id, f.name, f."ownerName", f.purse
                ORDER BY f.name ASC
            """),
            {"leagueId": league_id},
        ).fetchall()

        franchises = []
        for r in rows:
            f = dict(r._mapping)
            f["purse"] = int(f["purse"])
            f["rosterCount"] = int(f["rosterCount"])
            franchises.append(f)
        return franchises

    # GET state
    def get_state(self, league_id: str) -> Dict[str, Any]:
        """
        Full snapshot for the auction room: state row, current player, high
        bidder, the next few pending players and every franchise's purse.
        """
        with self.db.connect() as conn:
            league = self.store.require_league(conn, league_id)
            state = self.store.get_state(conn, league_id)
            now = self.clock()

            snapshot: Dict[str, Any] = {
                "leagueId": league_id,
                "leagueName": league["name"],
                "rosterSize": int(league.get("rosterSize") or self.settings.default_roster_size),
                "serverTime": now,
                "initialized": state is not None,
                "state": state,
                "currentRound": None,
                "currentPlayer": None,
                "highestBidder": None,
                "nextMinimumBid": None,
                "remainingTimeMs": None,
                "queue": [],
                "franchises": self._franchises(conn, league_id),
            }

            if not state:
                return snapshot

            if state["currentRoundId"]:
                snapshot["currentRound"] = self.store.get_round(conn, league_id, state["currentRoundId"])

                queue = conn.execute(
                    text("""
                        SELECT id, "playerRef", name, team, position, category, "basePrice", "orderIndex"
                        FROM "AuctionPlayer"
                        WHERE "roundId" = :roundId
                          AND status = :pending
                        ORDER BY "orderIndex" ASC, "createdAt" ASC, id ASC
                        LIMIT :limit
                    """),
                    {
                        "roundId": state["currentRoundId"],
                        "pending": STATUS_PENDING,
                        "limit": self.settings.queue_preview,
                    },
                ).fetchall()
                snapshot["queue"] = [dict(r._mapping) for r in queue]

            if state["currentPlayerId"]:
                player = self.store.get_player(conn, state["currentPlayerId"])
                snapshot["currentPlayer"] = player
                if player:
                    snapshot["nextMinimumBid"] = self.pricing.next_bid(
                        state["currentBid"], int(player["basePrice"])
                    )

            if state["highestBidderFranchiseId"]:
                snapshot["highestBidder"] = next(
                    (f for f in snapshot["franchises"] if f["id"] == state["highestBidderFranchiseId"]),
                    None,
                )

            if state["isPaused"]:
                snapshot["remainingTimeMs"] = state["pausedRemainingMs"]
            elif state["timerEndTime"] is not None:
                snapshot["remainingTimeMs"] = max(0, state["timerEndTime"] - now)

        return snapshot

    # GET rounds
    def get_rounds(self, league_id: str) -> List[Dict[str, Any]]:
        with self.db.connect() as conn:
            self.store.require_league(conn, league_id)
            rows = conn.execute(
                text("""
                    SELECT
                        r.id,
                        r."roundNumber",
                        r.name,
                        r."isActive",
                        r."isCompleted",
                        r."createdAt",
                        COUNT(p.id) AS "totalPlayers",
                        SUM(CASE WHEN p.status = 'pending' THEN 1 ELSE 0 END) AS "pendingCount",
                        SUM(CASE WHEN p.status = 'current' THEN 1 ELSE 0 END) AS "currentCount",
                        SUM(CASE WHEN p.status = 'sold' THEN 1 ELSE 0 END) AS "soldCount",
                        SUM(CASE WHEN p.status = 'unsold' THEN 1 ELSE 0 END) AS "unsoldCount"
                    FROM "AuctionRound" r
                    LEFT JOIN "AuctionPlayer" p ON p."roundId" = r.id
                    WHERE r."leagueId" = :leagueId
                    GROUP BY r.id, r."roundNumber", r.name, r."isActive", r."isCompleted", r."createdAt"
                    ORDER BY r."roundNumber" ASC
                """),
                {"leagueId": league_id},
            ).fetchall()

        rounds = []
        for r in rows:
            rnd = dict(r._mapping)
            rnd["isActive"] = bool(rnd["isActive"])
            rnd["isCompleted"] = bool(rnd["isCompleted"])
            for key in ("totalPlayers", "pendingCount", "currentCount", "soldCount", "unsoldCount"):
                rnd[key] = int(rnd[key] or 0)
            rounds.append(rnd)
        return rounds

    # GET players
    def get_players(self, league_id: str, round_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status is not None and status not in PLAYER_STATUSES:
            raise ValueError(f"Invalid status: {status}")

        sql = """
            SELECT p.*, f.name AS "soldToFranchiseName"
            FROM "AuctionPlayer" p
            LEFT JOIN "Franchise" f ON f.id = p."soldToFranchiseId"
            WHERE p."leagueId" = :leagueId
        """
        params: Dict[str, Any] = {"leagueId": league_id}
        if round_id:
            sql += ' AND p."roundId" = :roundId'
            params["roundId"] = round_id
        if status:
            sql += " AND p.status = :status"
            params["status"] = status
        sql += ' ORDER BY p."roundId", p."orderIndex" ASC, p."createdAt" ASC, p.id ASC'

        with self.db.connect() as conn:
            self.store.require_league(conn, league_id)
            if round_id:
                self.store.require_round(conn, league_id, round_id)
            rows = conn.execute(text(sql), params).fetchall()

        return [dict(r._mapping) for r in rows]

    # GET logs
    def get_logs(self, league_id: str, round_id: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest first. limit is clamped to 1..MAX_LOG_LIMIT."""
        limit = self.settings.log_limit if limit is None else int(limit)
        limit = max(1, min(limit, MAX_LOG_LIMIT))

        sql = """
            SELECT l.*, f.name AS "franchiseName", p.name AS "playerName"
            FROM "AuctionLog" l
            LEFT JOIN "Franchise" f ON f.id = l."franchiseId"
            LEFT JOIN "AuctionPlayer" p ON p.id = l."auctionPlayerId"
            WHERE l."leagueId" = :leagueId
        """
        params: Dict[str, Any] = {"leagueId": league_id, "limit": limit}
        if round_id:
            sql += ' AND l."roundId" = :roundId'
            params["roundId"] = round_id
        sql += " ORDER BY l.id DESC LIMIT :limit"

        with self.db.connect() as conn:
            self.store.require_league(conn, league_id)
            rows = conn.execute(text(sql), params).fetchall()

        return [dict(r._mapping) for r in rows]

    # GET unsold
    def get_unsold(self, league_id: str) -> List[Dict[str, Any]]:
        with self.db.connect() as conn:
            self.store.require_league(conn, league_id)
            rows = conn.execute(
                text("""
                    SELECT u.*, r."roundNumber" AS "originalRoundNumber"
                    FROM "UnsoldPlayer" u
                    LEFT JOIN "AuctionRound" r ON r.id = u."originalRoundId"
                    WHERE u."leagueId" = :leagueId
                    ORDER BY u."createdAt" DESC, u.id DESC
                """),
                {"leagueId": league_id},
            ).fetchall()

        return [dict(r._mapping) for r in rows]

    # GET franchises
    def get_franchises(self, league_id: str) -> List[Dict[str, Any]]:
        with self.db.connect() as conn:
            self.store.require_league(conn, league_id)
            franchises = self._franchises(conn, league_id)

            rows = conn.execute(
                text("""
                    SELECT
                        p.id,
                        p."playerRef",
                        p.name,
                        p.team,
                        p.category,
                        p."soldForAmount",
                        p."soldToFranchiseId",
                        p."soldAt"
                    FROM "AuctionPlayer" p
                    WHERE p."leagueId" = :leagueId
                      AND p.status = :sold
                    ORDER BY p."soldAt" ASC, p.id ASC
                """),
                {"leagueId": league_id, "sold": STATUS_SOLD},
            ).fetchall()

        purchases: Dict[str, List[Dict[str, Any]]] = {}
        for r in rows:
            p = dict(r._mapping)
            purchases.setdefault(p.pop("soldToFranchiseId"), []).append(p)

        for f in franchises:
            f["purchases"] = purchases.get(f["id"], [])
            f["spent"] = sum(int(p["soldForAmount"] or 0) for p in f["purchases"])
        return franchises

