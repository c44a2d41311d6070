# endpoints/auction/auctionBroadcast.py
from socketioInstance import socketio
from utils.jsonSafe import jsonSafe

AUCTION_UPDATED_EVENT = "auction:updated"


def auction_room(league_id: str) -> str:
    return f"auction:{league_id}"


def broadcast_auction_update(league_id: str, payload: dict):
    socketio.emit(AUCTION_UPDATED_EVENT, jsonSafe(payload), room=auction_room(league_id))
