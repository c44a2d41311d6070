# api.py
import logging

from flask import Flask, jsonify
from flask_cors import CORS

from config import CORS_ORIGINS
from endpoints.auction.routes import setup_routes as AuctionRoutes
from endpoints.franchise.routes import setup_routes as FranchiseRoutes

logger = logging.getLogger(__name__)


def create_app(db_engine=None, settings=None, clock=None):

    if db_engine is None:
        from db import engine as db_engine

    app = Flask(__name__)
    CORS(app, origins=CORS_ORIGINS)

    AuctionRoutes(app, db_engine, settings=settings, clock=clock)
    FranchiseRoutes(app, db_engine, settings=settings)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    logger.debug("Auction API created on %s", db_engine.dialect.name)
    return app

if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5050, debug=True)
