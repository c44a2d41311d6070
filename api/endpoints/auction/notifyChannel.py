# endpoints/auction/notifyChannel.py
import json
from sqlalchemy import text

AUCTION_NOTIFY_CHANNEL = "auction_updated"


def notify_auction_updated(conn, league_id: str, reason: str) -> None:
    """
    Queues a pg_notify inside the caller's transaction; Postgres delivers it on
    commit and drops it on rollback. Other dialects have no LISTEN/NOTIFY and
    their clients poll the state endpoint instead.
    """
    if conn.dialect.name != "postgresql":
        return

    payload = json.dumps({"leagueId": league_id, "reason": reason})
    conn.execute(
        text("SELECT pg_notify(:channel, :payload)"),
        {"channel": AUCTION_NOTIFY_CHANNEL, "payload": payload},
    )
