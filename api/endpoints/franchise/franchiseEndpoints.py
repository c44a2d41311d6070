# endpoints/franchise/franchiseEndpoints.py
import logging

from flask import request, jsonify

from endpoints.auction.auctionErrors import AuctionError
from endpoints.franchise.franchiseModel import FranchiseModel
from utils.jsonSafe import jsonSafe

logger = logging.getLogger(__name__)


class FranchiseEndpoints:
    def __init__(self, db_engine, settings=None):
        self.franchiseModel = FranchiseModel(db_engine, settings=settings)

    # GET /api/league/<league_id>/franchises
    def list_franchises(self, league_id: str):
        try:
            franchises = self.franchiseModel.list_franchises(league_id)
            return jsonify(jsonSafe({"franchises": franchises})), 200
        except AuctionError as e:
            return jsonify(e.to_dict()), e.status
        except Exception:
            logger.exception("Failed to list franchises")
            return jsonify({"message": "Failed to list franchises"}), 500

    # POST /api/league/<league_id>/franchises
    # { "name": "Mumbai Mavericks", "ownerName": "...", "purse": 120000000 }
    def create_franchise(self, league_id: str):
        data = request.get_json(silent=True) or {}
        if "name" not in data:
            return jsonify({"message": "Missing fields: name"}), 400

        try:
            created = self.franchiseModel.create_franchise(
                league_id,
                name=data["name"],
                owner_name=data.get("ownerName"),
                purse=data.get("purse"),
            )
            return jsonify(jsonSafe(created)), 201
        except AuctionError as e:
            return jsonify(e.to_dict()), e.status
        except ValueError as e:
            return jsonify({"message": str(e)}), 400
        except Exception:
            logger.exception("Failed to create franchise")
            return jsonify({"message": "Failed to create franchise"}), 500

    # PATCH /api/league/<league_id>/franchises/<franchise_id>
    def update_franchise(self, league_id: str, franchise_id: str):
        patch = request.get_json(silent=True) or {}
        try:
            updated = self.franchiseModel.update_franchise(league_id, franchise_id, patch)
            return jsonify(jsonSafe(updated)), 200
        except AuctionError as e:
            return jsonify(e.to_dict()), e.status
        except ValueError as e:
            return jsonify({"message": str(e)}), 400
        except Exception:
            logger.exception("Failed to update franchise")
            return jsonify({"message": "Failed to update franchise"}), 500

    # DELETE /api/league/<league_id>/franchises/<franchise_id>
    def delete_franchise(self, league_id: str, franchise_id: str):
        try:
            result = self.franchiseModel.delete_franchise(league_id, franchise_id)
            return jsonify(result), 200
        except AuctionError as e:
            logger.warning("Delete franchise %s rejected: %s", franchise_id, e.message)
            return jsonify(e.to_dict()), e.status
        except Exception:
            logger.exception("Failed to delete franchise")
            return jsonify({"message": "Failed to delete franchise"}), 500
