# endpoints/auction/startAuctionNotifyListener.py
import json
import logging
import select

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

from endpoints.auction.auctionBroadcast import broadcast_auction_update
from endpoints.auction.auctionQueryModel import AuctionQueryModel
from endpoints.auction.notifyChannel import AUCTION_NOTIFY_CHANNEL

logger = logging.getLogger(__name__)


def _dsn(engine) -> str:
    # psycopg2 wants a plain postgresql:// URI, without the SQLAlchemy driver suffix.
    return engine.url.set(drivername="postgresql").render_as_string(hide_password=False)


def handle_notification(model: AuctionQueryModel, raw_payload: str) -> None:
    """Rebuilds the league snapshot named in a pg_notify payload and pushes it to the room."""
    try:
        payload = json.loads(raw_payload)
        league_id = str(payload["leagueId"])
    except (TypeError, ValueError, KeyError):
        logger.warning("Ignoring malformed %s payload: %r", AUCTION_NOTIFY_CHANNEL, raw_payload)
        return

    try:
        snapshot = model.get_state(league_id)
    except Exception:
        # Listener keeps running on snapshot errors
        logger.exception("Failed to build auction snapshot for league %s", league_id)
        return

    broadcast_auction_update(
        league_id,
        {"type": "notify", "reason": payload.get("reason"), "snapshot": snapshot},
    )


def start_auction_notify_listener(socketio, engine, settings=None):
    """
    Call once when the Socket.IO server starts (Postgres only).
    Listens for pg_notify events and broadcasts snapshots to the league room.
    """
    def _listen():
        conn = psycopg2.connect(_dsn(engine))
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)

        cur = conn.cursor()
        cur.execute(f"LISTEN {AUCTION_NOTIFY_CHANNEL};")
        logger.info("Listening on %s", AUCTION_NOTIFY_CHANNEL)

        model = AuctionQueryModel(engine, settings=settings)

        while True:
            # Wait up to 10s for a notify (keeps CPU low)
            if select.select([conn], [], [], 10) == ([], [], []):
                continue

            conn.poll()
            while conn.notifies:
                notify = conn.notifies.pop(0)
                handle_notification(model, notify.payload)

    socketio.start_background_task(_listen)
