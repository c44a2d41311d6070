# dev.py
from dotenv import load_dotenv
load_dotenv(".env")

import logging

from wsgi import app
from socketioInstance import socketio

logging.getLogger().setLevel(logging.DEBUG)

if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5050, debug=True, use_reloader=False)
