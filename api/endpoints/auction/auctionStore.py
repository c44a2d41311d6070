# endpoints/auction/auctionStore.py
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from endpoints.auction.auctionErrors import NotFound, StateConflict
from endpoints.auction.auctionTypes import STATUS_CURRENT, STATUS_PENDING, STATUS_UNSOLD
from endpoints.auction.notifyChannel import notify_auction_updated

logger = logging.getLogger(__name__)

# Columns update_state may touch. Keeps the dynamic SET clause closed.
STATE_COLUMNS = (
    "isActive",
    "isPaused",
    "currentPlayerId",
    "currentBid",
    "highestBidderFranchiseId",
    "timerEndTime",
    "pausedRemainingMs",
    "currentRoundId",
)

# Bidding fields cleared whenever a player leaves the block.
CLEARED_BIDDING = {
    "currentPlayerId": None,
    "currentBid": 0,
    "highestBidderFranchiseId": None,
    "timerEndTime": None,
    "pausedRemainingMs": None,
}


def new_id() -> str:
    return uuid.uuid4().hex


def log_entry(
    league_id: str,
    round_id: Optional[str],
    log_type: str,
    message: str,
    franchise_id: Optional[str] = None,
    auction_player_id: Optional[str] = None,
    amount: Optional[int] = None,
) -> Dict[str, Any]:
    return {
        "leagueId": league_id,
        "roundId": round_id,
        "logType": log_type,
        "message": message,
        "franchiseId": franchise_id,
        "auctionPlayerId": auction_player_id,
        "amount": amount,
    }


def _state_from_row(row) -> Dict[str, Any]:
    state = dict(row._mapping)
    state["isActive"] = bool(state["isActive"])
    state["isPaused"] = bool(state["isPaused"])
    state["currentBid"] = int(state["currentBid"] or 0)
    state["version"] = int(state["version"])
    for key in ("timerEndTime", "pausedRemainingMs"):
        if state[key] is not None:
            state[key] = int(state[key])
    return state


def _round_from_row(row) -> Dict[str, Any]:
    rnd = dict(row._mapping)
    rnd["isActive"] = bool(rnd["isActive"])
    rnd["isCompleted"] = bool(rnd["isCompleted"])
    return rnd


class AuctionStore:
    """
    Row access shared by the auction models. Every method except append_logs
    runs on the caller's connection so it joins the caller's transaction.
    """

    def __init__(self, db: Engine):
        self.db = db

    # ---------- League / franchise (collaborator tables) ----------

    def get_league(self, conn, league_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            text('SELECT id, name, "rosterSize" FROM "League" WHERE id = :leagueId'),
            {"leagueId": league_id},
        ).fetchone()
        return dict(row._mapping) if row else None

    def require_league(self, conn, league_id: str) -> Dict[str, Any]:
        league = self.get_league(conn, league_id)
        if not league:
            raise NotFound(f"League {league_id} not found")
        return league

    def require_franchise(self, conn, league_id: str, franchise_id: str) -> Dict[str, Any]:
        row = conn.execute(
            text("""
                SELECT id, "leagueId", name, "ownerName", purse
                FROM "Franchise"
                WHERE id = :franchiseId
            """),
            {"franchiseId": franchise_id},
        ).fetchone()

        if not row or row._mapping["leagueId"] != league_id:
            raise NotFound(f"Franchise {franchise_id} not found in league {league_id}")

        franchise = dict(row._mapping)
        franchise["purse"] = int(franchise["purse"])
        return franchise

    def roster_count(self, conn, franchise_id: str) -> int:
        row = conn.execute(
            text("""
                SELECT COUNT(*) AS cnt
                FROM "RosterEntry"
                WHERE "franchiseId" = :franchiseId
                  AND "droppedAt" IS NULL
            """),
            {"franchiseId": franchise_id},
        ).fetchone()
        return int(row._mapping["cnt"])

    # ---------- Auction state ----------

    def get_state(self, conn, league_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            text('SELECT * FROM "AuctionState" WHERE "leagueId" = :leagueId'),
            {"leagueId": league_id},
        ).fetchone()
        return _state_from_row(row) if row else None

    def ensure_state(self, conn, league_id: str) -> Dict[str, Any]:
        """Creates the league's singleton state row on first use."""
        conn.execute(
            text("""
                INSERT INTO "AuctionState" (id, "leagueId", "isActive", "isPaused", "currentBid", version)
                VALUES (:id, :leagueId, :false, :false, 0, 0)
                ON CONFLICT ("leagueId") DO NOTHING
            """),
            {"id": new_id(), "leagueId": league_id, "false": False},
        )
        return self.get_state(conn, league_id)

    def update_state(self, conn, state: Dict[str, Any], **fields) -> Dict[str, Any]:
        """
        Compare-and-swap on "AuctionState".version.

        Raises StateConflict when another writer committed since `state` was
        read; the caller's transaction then rolls back as a whole.
        Returns `state` with the new values applied.
        """
        unknown = set(fields) - set(STATE_COLUMNS)
        if unknown:
            raise KeyError(f"Not an AuctionState column: {', '.join(sorted(unknown))}")

        assignments = ", ".join(f'"{col}" = :{col}' for col in fields)
        sql = text(f"""
            UPDATE "AuctionState"
            SET {assignments},
                version = version + 1,
                "updatedAt" = CURRENT_TIMESTAMP
            WHERE "leagueId" = :leagueId
              AND version = :expectedVersion
        """)

        result = conn.execute(
            sql,
            {**fields, "leagueId": state["leagueId"], "expectedVersion": state["version"]},
        )
        if result.rowcount != 1:
            raise StateConflict()

        updated = dict(state)
        updated.update(fields)
        updated["version"] = state["version"] + 1
        return updated

    # ---------- Rounds / players ----------

    def get_round(self, conn, league_id: str, round_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            text('SELECT * FROM "AuctionRound" WHERE id = :roundId AND "leagueId" = :leagueId'),
            {"roundId": round_id, "leagueId": league_id},
        ).fetchone()
        return _round_from_row(row) if row else None

    def require_round(self, conn, league_id: str, round_id: str) -> Dict[str, Any]:
        rnd = self.get_round(conn, league_id, round_id)
        if not rnd:
            raise NotFound(f"Round {round_id} not found")
        return rnd

    def get_round_by_number(self, conn, league_id: str, round_number: int) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            text("""
                SELECT * FROM "AuctionRound"
                WHERE "leagueId" = :leagueId AND "roundNumber" = :roundNumber
            """),
            {"leagueId": league_id, "roundNumber": round_number},
        ).fetchone()
        return _round_from_row(row) if row else None

    def get_player(self, conn, player_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            text('SELECT * FROM "AuctionPlayer" WHERE id = :playerId'),
            {"playerId": player_id},
        ).fetchone()
        return dict(row._mapping) if row else None

    def require_player(self, conn, league_id: str, player_id: str) -> Dict[str, Any]:
        player = self.get_player(conn, player_id)
        if not player or player["leagueId"] != league_id:
            raise NotFound(f"Auction player {player_id} not found")
        return player

    def next_pending_player(self, conn, round_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            text("""
                SELECT *
                FROM "AuctionPlayer"
                WHERE "roundId" = :roundId
                  AND status = :pending
                ORDER BY "orderIndex" ASC, "createdAt" ASC, id ASC
                LIMIT 1
            """),
            {"roundId": round_id, "pending": STATUS_PENDING},
        ).fetchone()
        return dict(row._mapping) if row else None

    def transition_player(self, conn, player_id: str, from_status: str, to_status: str) -> bool:
        """Conditional status change. False when the row was not in from_status."""
        result = conn.execute(
            text("""
                UPDATE "AuctionPlayer"
                SET status = :toStatus
                WHERE id = :playerId
                  AND status = :fromStatus
            """),
            {"playerId": player_id, "fromStatus": from_status, "toStatus": to_status},
        )
        return result.rowcount == 1

    def max_order_index(self, conn, round_id: str) -> int:
        row = conn.execute(
            text('SELECT MAX("orderIndex") AS "maxOrder" FROM "AuctionPlayer" WHERE "roundId" = :roundId'),
            {"roundId": round_id},
        ).fetchone()
        value = row._mapping["maxOrder"]
        return -1 if value is None else int(value)

    def insert_players(self, conn, league_id: str, round_id: str, players: List[Dict[str, Any]], first_index: int) -> List[str]:
        if not players:
            return []

        rows = []
        for offset, p in enumerate(players):
            rows.append({
                "id": new_id(),
                "leagueId": league_id,
                "roundId": round_id,
                "playerRef": p["playerRef"],
                "name": p["name"],
                "team": p["team"],
                "position": p["position"],
                "category": p["category"],
                "basePrice": p["basePrice"],
                "status": STATUS_PENDING,
                "orderIndex": first_index + offset,
            })

        conn.execute(
            text("""
                INSERT INTO "AuctionPlayer"
                    (id, "leagueId", "roundId", "playerRef", name, team, position,
                     category, "basePrice", status, "orderIndex")
                VALUES
                    (:id, :leagueId, :roundId, :playerRef, :name, :team, :position,
                     :category, :basePrice, :status, :orderIndex)
            """),
            rows,
        )
        return [r["id"] for r in rows]

    def mirror_unsold(self, conn, player: Dict[str, Any]) -> str:
        unsold_id = new_id()
        conn.execute(
            text("""
                INSERT INTO "UnsoldPlayer"
                    (id, "leagueId", "auctionPlayerId", "originalRoundId", "playerRef",
                     name, team, position, category, "basePrice")
                VALUES
                    (:id, :leagueId, :auctionPlayerId, :roundId, :playerRef,
                     :name, :team, :position, :category, :basePrice)
            """),
            {
                "id": unsold_id,
                "leagueId": player["leagueId"],
                "auctionPlayerId": player["id"],
                "roundId": player["roundId"],
                "playerRef": player["playerRef"],
                "name": player["name"],
                "team": player["team"],
                "position": player["position"],
                "category": player["category"],
                "basePrice": player["basePrice"],
            },
        )
        return unsold_id

    def mark_unsold(self, conn, player: Dict[str, Any]) -> bool:
        """current -> unsold plus the unsold-pool copy. False if already resolved."""
        if not self.transition_player(conn, player["id"], STATUS_CURRENT, STATUS_UNSOLD):
            return False
        self.mirror_unsold(conn, player)
        return True

    # ---------- Side channels ----------

    def notify(self, conn, league_id: str, reason: str) -> None:
        notify_auction_updated(conn, league_id, reason)

    def append_logs(self, entries: List[Dict[str, Any]]) -> None:
        """
        Best-effort audit write, in its own transaction after the state change
        committed. Failures are logged and dropped.
        """
        if not entries:
            return

        try:
            with self.db.begin() as conn:
                conn.execute(
                    text("""
                        INSERT INTO "AuctionLog"
                            ("leagueId", "roundId", "logType", message,
                             "franchiseId", "auctionPlayerId", amount)
                        VALUES
                            (:leagueId, :roundId, :logType, :message,
                             :franchiseId, :auctionPlayerId, :amount)
                    """),
                    entries,
                )
        except Exception:
            logger.exception(
                "Failed to write %d auction log entries for league %s",
                len(entries),
                entries[0]["leagueId"],
            )
