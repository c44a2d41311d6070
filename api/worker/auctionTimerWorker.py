# worker/auctionTimerWorker.py
"""
Resolves auction timers nobody called timerExpired for.

    python worker/auctionTimerWorker.py

The model re-checks the deadline itself, so this loop is only a trigger;
running it next to clients that also call timerExpired is safe.
"""
import logging
import os
import sys
import time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text

if __name__ == "__main__":
    API_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if API_ROOT not in sys.path:
        sys.path.insert(0, API_ROOT)

from endpoints.auction.auctionErrors import AuctionError

logger = logging.getLogger(__name__)

# Safety bounds: never sleep longer than this without re-checking
MAX_SLEEP_SECONDS = 30
MIN_SLEEP_SECONDS = 0.5

_RUNNING_TIMERS_SQL = """
    SELECT "leagueId", "timerEndTime"
    FROM "AuctionState"
    WHERE "isActive" = :true
      AND "isPaused" = :false
      AND "currentPlayerId" IS NOT NULL
      AND "timerEndTime" IS NOT NULL
"""


def _get_soonest_deadline(conn, grace_ms: int) -> Optional[Tuple[str, int]]:
    """
    Returns (league_id, deadline_ms) for the running timer that ends first,
    where deadline = timerEndTime + grace.
    """
    row = conn.execute(
        text(_RUNNING_TIMERS_SQL + ' ORDER BY "timerEndTime" ASC LIMIT 1'),
        {"true": True, "false": False},
    ).fetchone()

    if not row:
        return None
    return str(row._mapping["leagueId"]), int(row._mapping["timerEndTime"]) + grace_ms


def process_due_timers(model, now: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Calls timer_expired once for every league whose deadline (plus grace) has
    passed at `now`. Returns one result per league processed.
    """
    now = model.clock() if now is None else now
    grace = model.settings.timer_grace_ms

    with model.db.connect() as conn:
        rows = conn.execute(
            text(_RUNNING_TIMERS_SQL + ' AND "timerEndTime" + :grace < :now ORDER BY "timerEndTime" ASC'),
            {"true": True, "false": False, "grace": grace, "now": now},
        ).fetchall()

    results = []
    for row in rows:
        league_id = str(row._mapping["leagueId"])
        try:
            result = model.timer_expired(league_id)
        except AuctionError as e:
            # Paused or a bid landed meanwhile
            logger.warning("Timer for league %s not resolved: %s", league_id, e.message)
            result = {"error": type(e).__name__, "message": e.message}

        result["leagueId"] = league_id
        results.append(result)

    return results


def _sleep_seconds(deadline_ms: int, now_ms: int) -> float:
    return max(MIN_SLEEP_SECONDS, min(MAX_SLEEP_SECONDS, (deadline_ms - now_ms) / 1000.0))


def run():
    from db import engine
    from endpoints.auction.auctionModel import AuctionModel

    model = AuctionModel(engine)
    grace = model.settings.timer_grace_ms

    while True:
        try:
            with engine.connect() as conn:
                nxt = _get_soonest_deadline(conn, grace)

            if not nxt:
                # No auction with a clock running
                time.sleep(MAX_SLEEP_SECONDS)
                continue

            _, deadline = nxt
            now = model.clock()
            if deadline > now:
                time.sleep(_sleep_seconds(deadline, now))
                continue

            for result in process_due_timers(model):
                logger.info("Resolved expired timer: %s", result)

            # Tiny pause to avoid a tight loop when several timers end together
            time.sleep(MIN_SLEEP_SECONDS)

        except Exception:
            logger.exception("Auction timer worker error")
            time.sleep(2)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
