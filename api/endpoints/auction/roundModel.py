# endpoints/auction/roundModel.py
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from config import settings as app_settings
from endpoints.auction.auctionErrors import NotFound, PreconditionFailed
from endpoints.auction.auctionLocks import control_serializer
from endpoints.auction.auctionStore import AuctionStore, new_id
from endpoints.auction.auctionTypes import STATUS_CURRENT, STATUS_PENDING

logger = logging.getLogger(__name__)


def _first(raw: Dict[str, Any], *keys):
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_player(raw: Dict[str, Any], default_base_price: int) -> Dict[str, Any]:
    """
    Accepts the shapes admin tools send (player_id / playerId / playerRef,
    base_price / basePrice) and returns the queue row fields.
    """
    if not isinstance(raw, dict):
        raise ValueError("Each player must be an object")

    name = _first(raw, "name", "playerName")
    if not name:
        raise ValueError("Each player needs a name")

    ref = _first(raw, "playerRef", "playerId", "player_id", "id") or name

    base_price = _first(raw, "basePrice", "base_price")
    if base_price is None:
        base_price = default_base_price
    try:
        base_price = int(base_price)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid basePrice for {name}")
    if base_price <= 0:
        raise ValueError(f"basePrice must be positive for {name}")

    position = _first(raw, "position")
    category = _first(raw, "category")

    return {
        "playerRef": str(ref),
        "name": str(name),
        "team": str(_first(raw, "team") or ""),
        "position": position or category or "Unknown",
        "category": category or position or "Unknown",
        "basePrice": base_price,
    }


class RoundModel:
    """
    Round and queue management. Shares the control serializer with
    AuctionModel so queue edits never interleave with a control action.
    """

    def __init__(self, db: Engine, settings=None, control_lock=None):
        self.db = db
        self.settings = settings or app_settings
        self.control_lock = control_lock or control_serializer(self.settings)
        self.store = AuctionStore(db)

    def _normalize_all(self, players: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        if players is None:
            return []
        if not isinstance(players, list):
            raise ValueError("players must be a list")
        return [normalize_player(p, self.settings.default_base_price) for p in players]

    def _current_player_in_round(self, conn, league_id: str, round_id: str) -> bool:
        state = self.store.get_state(conn, league_id)
        if not state or not state["currentPlayerId"]:
            return False
        player = self.store.get_player(conn, state["currentPlayerId"])
        return bool(player) and player["roundId"] == round_id and player["status"] == STATUS_CURRENT

    # ---------- createRound ----------

    def create_round(self, league_id: str, round_number: int, name: str, players=None) -> Dict[str, Any]:
        """
        Creates round `round_number`, or replaces it wholesale when it exists:
        name overwritten, active and completed flags cleared, previous queue
        deleted, new queue inserted in order.
        """
        queue = self._normalize_all(players)
        round_number = int(round_number)
        if round_number <= 0:
            raise ValueError("roundNumber must be positive")
        if not name:
            raise ValueError("name is required")

        with self.control_lock.hold(reason=f"create round {round_number} league={league_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                existing = self.store.get_round_by_number(conn, league_id, round_number)

                if existing:
                    round_id = existing["id"]
                    if self._current_player_in_round(conn, league_id, round_id):
                        raise PreconditionFailed("Round has a player up for bidding; stop the auction first")

                    conn.execute(
                        text("""
                            UPDATE "AuctionRound"
                            SET name = :name, "isActive" = :false, "isCompleted" = :false
                            WHERE id = :roundId
                        """),
                        {"name": name, "false": False, "roundId": round_id},
                    )
                    conn.execute(
                        text('DELETE FROM "AuctionPlayer" WHERE "roundId" = :roundId'),
                        {"roundId": round_id},
                    )
                else:
                    round_id = new_id()
                    conn.execute(
                        text("""
                            INSERT INTO "AuctionRound" (id, "leagueId", "roundNumber", name, "isActive", "isCompleted")
                            VALUES (:id, :leagueId, :roundNumber, :name, :false, :false)
                        """),
                        {
                            "id": round_id,
                            "leagueId": league_id,
                            "roundNumber": round_number,
                            "name": name,
                            "false": False,
                        },
                    )

                self.store.insert_players(conn, league_id, round_id, queue, first_index=0)
                self.store.notify(conn, league_id, "create_round")

        logger.info(
            "Round %s (%s) %s for league %s with %d players",
            round_number, round_id, "replaced" if existing else "created", league_id, len(queue),
        )
        return {
            "roundId": round_id,
            "roundNumber": round_number,
            "name": name,
            "playerCount": len(queue),
            "replaced": bool(existing),
        }

    # ---------- importPlayers ----------

    def import_players(self, league_id: str, round_id: str, players, append: bool = True) -> Dict[str, Any]:
        """
        Adds players to a round's queue after the current max orderIndex.
        With append=False the round's pending players are dropped first;
        sold, unsold and current players are kept.
        """
        queue = self._normalize_all(players)
        if not queue:
            raise ValueError("players must be a non-empty list")

        with self.control_lock.hold(reason=f"import players round={round_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                rnd = self.store.require_round(conn, league_id, round_id)
                if rnd["isCompleted"]:
                    raise PreconditionFailed(f"Round {rnd['roundNumber']} is completed; reset it first")

                removed = 0
                if not append:
                    result = conn.execute(
                        text('DELETE FROM "AuctionPlayer" WHERE "roundId" = :roundId AND status = :pending'),
                        {"roundId": round_id, "pending": STATUS_PENDING},
                    )
                    removed = result.rowcount

                first_index = self.store.max_order_index(conn, round_id) + 1
                self.store.insert_players(conn, league_id, round_id, queue, first_index=first_index)
                self.store.notify(conn, league_id, "import_players")

        return {"roundId": round_id, "count": len(queue), "removed": removed, "append": append}

    # ---------- supplementary round admin ----------

    def delete_round(self, league_id: str, round_id: str) -> Dict[str, Any]:
        with self.control_lock.hold(reason=f"delete round={round_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                rnd = self.store.require_round(conn, league_id, round_id)
                state = self.store.get_state(conn, league_id)

                if self._current_player_in_round(conn, league_id, round_id):
                    raise PreconditionFailed("Round has a player up for bidding; stop the auction first")

                if state and state["currentRoundId"] == round_id:
                    self.store.update_state(conn, state, currentRoundId=None, isActive=False, isPaused=False)

                # Players go with the round (FK cascade); done explicitly for stores without it.
                conn.execute(text('DELETE FROM "AuctionPlayer" WHERE "roundId" = :roundId'), {"roundId": round_id})
                conn.execute(text('DELETE FROM "AuctionRound" WHERE id = :roundId'), {"roundId": round_id})
                self.store.notify(conn, league_id, "delete_round")

        logger.info("Deleted round %s (%s) from league %s", rnd["roundNumber"], round_id, league_id)
        return {"roundId": round_id, "deleted": True}

    def reset_round(self, league_id: str, round_id: str) -> Dict[str, Any]:
        """Reopens a round. Purses and roster entries are left alone."""
        with self.control_lock.hold(reason=f"reset round={round_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                self.store.require_round(conn, league_id, round_id)

                if self._current_player_in_round(conn, league_id, round_id):
                    raise PreconditionFailed("Round has a player up for bidding; stop the auction first")

                result = conn.execute(
                    text("""
                        UPDATE "AuctionPlayer"
                        SET status = :pending,
                            "soldToFranchiseId" = NULL,
                            "soldForAmount" = NULL,
                            "soldAt" = NULL
                        WHERE "roundId" = :roundId
                    """),
                    {"roundId": round_id, "pending": STATUS_PENDING},
                )
                conn.execute(
                    text('UPDATE "AuctionRound" SET "isActive" = :false, "isCompleted" = :false WHERE id = :roundId'),
                    {"roundId": round_id, "false": False},
                )
                self.store.notify(conn, league_id, "reset_round")

        return {"roundId": round_id, "playerCount": result.rowcount}

    def requeue_unsold(self, league_id: str, round_id: str, unsold_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Moves unsold-pool entries to the end of `round_id`'s queue as new
        pending players. With no ids the whole pool is moved.
        """
        with self.control_lock.hold(reason=f"requeue unsold round={round_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                rnd = self.store.require_round(conn, league_id, round_id)
                if rnd["isCompleted"]:
                    raise PreconditionFailed(f"Round {rnd['roundNumber']} is completed; reset it first")

                if unsold_ids:
                    stmt = text("""
                        SELECT * FROM "UnsoldPlayer"
                        WHERE "leagueId" = :leagueId AND id IN :ids
                        ORDER BY "createdAt" ASC, id ASC
                    """).bindparams(bindparam("ids", expanding=True))
                    rows = conn.execute(stmt, {"leagueId": league_id, "ids": list(unsold_ids)}).fetchall()
                    if len(rows) != len(set(unsold_ids)):
                        raise NotFound("Some unsold players were not found in this league")
                else:
                    rows = conn.execute(
                        text("""
                            SELECT * FROM "UnsoldPlayer"
                            WHERE "leagueId" = :leagueId
                            ORDER BY "createdAt" ASC, id ASC
                        """),
                        {"leagueId": league_id},
                    ).fetchall()

                pool = [dict(r._mapping) for r in rows]
                if not pool:
                    return {"roundId": round_id, "count": 0}

                first_index = self.store.max_order_index(conn, round_id) + 1
                self.store.insert_players(conn, league_id, round_id, pool, first_index=first_index)

                conn.execute(
                    text('DELETE FROM "UnsoldPlayer" WHERE id IN :ids').bindparams(
                        bindparam("ids", expanding=True)
                    ),
                    {"ids": [p["id"] for p in pool]},
                )
                self.store.notify(conn, league_id, "requeue_unsold")

        logger.info("Requeued %d unsold players into round %s", len(pool), round_id)
        return {"roundId": round_id, "count": len(pool)}

    def update_player(self, league_id: str, player_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Reorders or reprices a pending player."""
        fields: Dict[str, Any] = {}

        if patch.get("orderIndex") is not None:
            try:
                fields["orderIndex"] = int(patch["orderIndex"])
            except (TypeError, ValueError):
                raise ValueError("orderIndex must be an integer")

        base_price = _first(patch, "basePrice", "base_price")
        if base_price is not None:
            try:
                fields["basePrice"] = int(base_price)
            except (TypeError, ValueError):
                raise ValueError("basePrice must be an integer")
            if fields["basePrice"] <= 0:
                raise ValueError("basePrice must be positive")

        if not fields:
            raise ValueError("Nothing to update (orderIndex or basePrice)")

        with self.control_lock.hold(reason=f"update player={player_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                self.store.require_player(conn, league_id, player_id)

                assignments = ", ".join(f'"{col}" = :{col}' for col in fields)
                result = conn.execute(
                    text(f"""
                        UPDATE "AuctionPlayer"
                        SET {assignments}
                        WHERE id = :playerId
                          AND status = :pending
                    """),
                    {**fields, "playerId": player_id, "pending": STATUS_PENDING},
                )
                if result.rowcount != 1:
                    raise PreconditionFailed("Only pending players can be edited")

                player = self.store.get_player(conn, player_id)
                self.store.notify(conn, league_id, "update_player")

        return player


