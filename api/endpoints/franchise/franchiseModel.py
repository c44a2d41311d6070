# endpoints/franchise/franchiseModel.py
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from config import settings as app_settings
from endpoints.auction.auctionErrors import PreconditionFailed
from endpoints.auction.auctionStore import AuctionStore, new_id

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = ("name", "ownerName", "purse")


def _clean_purse(value) -> int:
    try:
        purse = int(value)
    except (TypeError, ValueError):
        raise ValueError("purse must be an integer")
    if purse < 0:
        raise ValueError("purse cannot be negative")
    return purse


class FranchiseModel:
    def __init__(self, db: Engine, settings=None):
        self.db = db
        self.settings = settings or app_settings
        self.store = AuctionStore(db)

    def list_franchises(self, league_id: str) -> List[Dict[str, Any]]:
        with self.db.connect() as conn:
            self.store.require_league(conn, league_id)
            rows = conn.execute(
                text("""
                    SELECT id, "leagueId", name, "ownerName", purse, "createdAt"
                    FROM "Franchise"
                    WHERE "leagueId" = :leagueId
                    ORDER BY name ASC
                """),
                {"leagueId": league_id},
            ).fetchall()
        return [dict(r._mapping) for r in rows]

    def create_franchise(self, league_id: str, name: str, owner_name: Optional[str] = None, purse=None) -> Dict[str, Any]:
        if not name or not str(name).strip():
            raise ValueError("name is required")
        purse = self.settings.default_purse if purse is None else _clean_purse(purse)

        franchise_id = new_id()
        with self.db.begin() as conn:
            self.store.require_league(conn, league_id)
            conn.execute(
                text("""
                    INSERT INTO "Franchise" (id, "leagueId", name, "ownerName", purse)
                    VALUES (:id, :leagueId, :name, :ownerName, :purse)
                """),
                {
                    "id": franchise_id,
                    "leagueId": league_id,
                    "name": str(name).strip(),
                    "ownerName": owner_name,
                    "purse": purse,
                },
            )
            created = self.store.require_franchise(conn, league_id, franchise_id)

        logger.info("Created franchise %s (%s) in league %s", created["name"], franchise_id, league_id)
        return created

    def update_franchise(self, league_id: str, franchise_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: patch[k] for k in PATCHABLE_FIELDS if k in patch}
        if not fields:
            raise ValueError(f"Nothing to update ({', '.join(PATCHABLE_FIELDS)})")

        if "name" in fields:
            if not fields["name"] or not str(fields["name"]).strip():
                raise ValueError("name cannot be empty")
            fields["name"] = str(fields["name"]).strip()
        if "purse" in fields:
            fields["purse"] = _clean_purse(fields["purse"])

        assignments = ", ".join(f'"{col}" = :{col}' for col in fields)

        with self.db.begin() as conn:
            self.store.require_franchise(conn, league_id, franchise_id)
            conn.execute(
                text(f'UPDATE "Franchise" SET {assignments} WHERE id = :franchiseId'),
                {**fields, "franchiseId": franchise_id},
            )
            return self.store.require_franchise(conn, league_id, franchise_id)

    def delete_franchise(self, league_id: str, franchise_id: str) -> Dict[str, Any]:
        """
        Removes the franchise and its roster. Its auction purchases stay sold
        but lose the buyer reference. Refused while it holds the high bid.
        """
        with self.db.begin() as conn:
            franchise = self.store.require_franchise(conn, league_id, franchise_id)

            state = self.store.get_state(conn, league_id)
            if state and state["highestBidderFranchiseId"] == franchise_id:
                raise PreconditionFailed(f"{franchise['name']} holds the current high bid")

            conn.execute(
                text("""
                    UPDATE "AuctionPlayer"
                    SET "soldToFranchiseId" = NULL
                    WHERE "soldToFranchiseId" = :franchiseId
                """),
                {"franchiseId": franchise_id},
            )
            conn.execute(
                text('DELETE FROM "RosterEntry" WHERE "franchiseId" = :franchiseId'),
                {"franchiseId": franchise_id},
            )
            conn.execute(
                text('DELETE FROM "Franchise" WHERE id = :franchiseId'),
                {"franchiseId": franchise_id},
            )
            self.store.notify(conn, league_id, "delete_franchise")

        logger.info("Deleted franchise %s from league %s", franchise_id, league_id)
        return {"franchiseId": franchise_id, "deleted": True}
