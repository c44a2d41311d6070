# socketioInstance.py
from flask_socketio import SocketIO

from config import CORS_ORIGINS

socketio = SocketIO(
    cors_allowed_origins=CORS_ORIGINS,
)
