# endpoints/auction/auctionSocket.py
import logging

from flask import request
from flask_socketio import emit, join_room, leave_room

from endpoints.auction.auctionBroadcast import auction_room
from endpoints.auction.auctionErrors import AuctionError
from endpoints.auction.auctionQueryModel import AuctionQueryModel
from socketioInstance import socketio
from utils.jsonSafe import jsonSafe

logger = logging.getLogger(__name__)


def _league_id(payload):
    league_id = payload.get("leagueId") if isinstance(payload, dict) else None
    if league_id is None or str(league_id).strip() == "":
        emit("auction:error", {"message": "leagueId is required"})
        return None
    return str(league_id)


def register_auction_socket_handlers(engine, settings=None, clock=None):
    model = AuctionQueryModel(engine, settings=settings, clock=clock)

    @socketio.on("auction:join")
    def on_join(payload):
        league_id = _league_id(payload)
        if league_id is None:
            return

        try:
            snapshot = model.get_state(league_id)
        except AuctionError as e:
            emit("auction:error", e.to_dict())
            return
        except Exception:
            logger.exception("Failed to build auction snapshot for league %s", league_id)
            emit("auction:error", {"message": "Failed to load auction"})
            return

        join_room(auction_room(league_id))
        logger.debug("Socket %s joined %s", request.sid, auction_room(league_id))
        emit("auction:snapshot", {"snapshot": jsonSafe(snapshot)})

    @socketio.on("auction:leave")
    def on_leave(payload):
        league_id = _league_id(payload)
        if league_id is None:
            return

        leave_room(auction_room(league_id))
        logger.debug("Socket %s left %s", request.sid, auction_room(league_id))
