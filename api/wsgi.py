# wsgi.py
import logging

from api import create_app
from db import engine
from endpoints.auction.auctionSocket import register_auction_socket_handlers
from endpoints.auction.startAuctionNotifyListener import start_auction_notify_listener
from socketioInstance import socketio

logging.basicConfig(level=logging.INFO)

app = create_app(engine)
socketio.init_app(app)
register_auction_socket_handlers(engine)

# LISTEN/NOTIFY only exists on Postgres; elsewhere clients poll /state.
if engine.dialect.name == "postgresql":
    start_auction_notify_listener(socketio, engine)

# Optional: if you want a single place to start dev too:
if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5050, debug=True)
