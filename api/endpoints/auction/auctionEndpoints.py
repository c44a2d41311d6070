# endpoints/auction/auctionEndpoints.py
import logging

from flask import jsonify, request

from config import settings as app_settings
from endpoints.auction.auctionErrors import AuctionError
from endpoints.auction.auctionLocks import bid_serializer, control_serializer
from endpoints.auction.auctionModel import AuctionModel
from endpoints.auction.auctionQueryModel import AuctionQueryModel
from endpoints.auction.pricingPolicy import PricingPolicy
from endpoints.auction.roundModel import RoundModel
from utils.jsonSafe import jsonSafe

logger = logging.getLogger(__name__)


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes")


class AuctionEndpoints:
    def __init__(self, db_engine, settings=None, clock=None):
        settings = settings or app_settings
        pricing = PricingPolicy.from_settings(settings)

        # One control lock per process, shared by the state machine and round admin.
        control_lock = control_serializer(settings)

        self.auctionModel = AuctionModel(
            db_engine,
            settings=settings,
            pricing=pricing,
            bid_lock=bid_serializer(settings),
            control_lock=control_lock,
            clock=clock,
        )
        self.roundModel = RoundModel(db_engine, settings=settings, control_lock=control_lock)
        self.queryModel = AuctionQueryModel(db_engine, settings=settings, pricing=pricing, clock=clock)

    def _run(self, what: str, fn, status: int = 200):
        try:
            return jsonify(jsonSafe(fn())), status
        except AuctionError as e:
            logger.warning("%s rejected: %s", what, e.message)
            return jsonify(e.to_dict()), e.status
        except ValueError as e:
            return jsonify({"message": str(e)}), 400
        except Exception:
            logger.exception("%s failed", what)
            return jsonify({"message": f"Failed to {what}"}), 500

    # POST /api/auction/<league_id>/setup
    # { "budget": 120000000 }
    def setup(self, league_id: str):
        data = request.get_json(silent=True) or {}
        budget = data.get("budget")
        if budget is not None:
            try:
                budget = int(budget)
            except (TypeError, ValueError):
                return jsonify({"message": "budget must be an integer"}), 400

        return self._run("set up auction", lambda: self.auctionModel.setup(league_id, budget))

    # GET /api/auction/<league_id>/state
    def get_state(self, league_id: str):
        return self._run("get auction state", lambda: self.queryModel.get_state(league_id))

    # GET /api/auction/<league_id>/rounds
    def get_rounds(self, league_id: str):
        return self._run("get rounds", lambda: {"rounds": self.queryModel.get_rounds(league_id)})

    # POST /api/auction/<league_id>/rounds
    # { "roundNumber": 1, "name": "Marquee", "players": [ { "name": ..., "basePrice": ... } ] }
    def create_round(self, league_id: str):
        data = request.get_json(silent=True) or {}

        required = ["roundNumber", "name"]
        missing = [k for k in required if k not in data]
        if missing:
            return jsonify({"message": f"Missing fields: {', '.join(missing)}"}), 400

        try:
            round_number = int(data["roundNumber"])
        except (TypeError, ValueError):
            return jsonify({"message": "roundNumber must be an integer"}), 400

        return self._run(
            "create round",
            lambda: self.roundModel.create_round(
                league_id,
                round_number=round_number,
                name=data["name"],
                players=data.get("players") or [],
            ),
            status=201,
        )

    # DELETE /api/auction/<league_id>/rounds/<round_id>
    def delete_round(self, league_id: str, round_id: str):
        return self._run("delete round", lambda: self.roundModel.delete_round(league_id, round_id))

    # POST /api/auction/<league_id>/rounds/<round_id>/players
    # { "players": [...], "append": true }
    def import_players(self, league_id: str, round_id: str):
        data = request.get_json(silent=True) or {}
        if "players" not in data:
            return jsonify({"message": "Missing fields: players"}), 400

        append = _as_bool(data.get("append"), default=True)
        return self._run(
            "import players",
            lambda: self.roundModel.import_players(league_id, round_id, data["players"], append=append),
        )

    # POST /api/auction/<league_id>/rounds/<round_id>/reset
    def reset_round(self, league_id: str, round_id: str):
        return self._run("reset round", lambda: self.roundModel.reset_round(league_id, round_id))

    # POST /api/auction/<league_id>/rounds/<round_id>/requeueUnsold
    # { "unsoldIds": ["..."] }   (omit to requeue the whole pool)
    def requeue_unsold(self, league_id: str, round_id: str):
        data = request.get_json(silent=True) or {}
        unsold_ids = data.get("unsoldIds")
        if unsold_ids is not None and not isinstance(unsold_ids, list):
            return jsonify({"message": "unsoldIds must be a list"}), 400

        return self._run(
            "requeue unsold players",
            lambda: self.roundModel.requeue_unsold(league_id, round_id, unsold_ids),
        )

    # GET /api/auction/<league_id>/players?roundId=&status=
    def get_players(self, league_id: str):
        round_id = request.args.get("roundId") or None
        status = request.args.get("status") or None
        return self._run(
            "get players",
            lambda: {"players": self.queryModel.get_players(league_id, round_id=round_id, status=status)},
        )

    # PATCH /api/auction/<league_id>/players/<player_id>
    # { "orderIndex": 3, "basePrice": 5000000 }
    def update_player(self, league_id: str, player_id: str):
        patch = request.get_json(silent=True) or {}
        return self._run("update player", lambda: self.roundModel.update_player(league_id, player_id, patch))

    # GET /api/auction/<league_id>/logs?roundId=&limit=
    def get_logs(self, league_id: str):
        round_id = request.args.get("roundId") or None
        limit = request.args.get("limit")
        if limit is not None:
            try:
                limit = int(limit)
            except ValueError:
                return jsonify({"message": "limit must be an integer"}), 400

        return self._run(
            "get logs",
            lambda: {"logs": self.queryModel.get_logs(league_id, round_id=round_id, limit=limit)},
        )

    # GET /api/auction/<league_id>/unsold
    def get_unsold(self, league_id: str):
        return self._run("get unsold players", lambda: {"unsold": self.queryModel.get_unsold(league_id)})

    # GET /api/auction/<league_id>/franchises
    def get_franchises(self, league_id: str):
        return self._run("get franchises", lambda: {"franchises": self.queryModel.get_franchises(league_id)})

    # POST /api/auction/<league_id>/bid
    # { "franchiseId": "..." }
    def bid(self, league_id: str):
        data = request.get_json(silent=True) or {}
        franchise_id = data.get("franchiseId")
        if not franchise_id:
            return jsonify({"message": "Missing fields: franchiseId"}), 400

        return self._run("place bid", lambda: self.auctionModel.bid(league_id, str(franchise_id)))

    # POST /api/auction/<league_id>/control
    # { "action": "selectRound" | "start" | "next" | ..., "roundId": "..." }
    def control(self, league_id: str):
        data = request.get_json(silent=True) or {}
        action = data.get("action") or data.get("controlAction")
        if not action:
            return jsonify({"message": "Missing fields: action"}), 400

        return self._run(
            f"run {action}",
            lambda: self.auctionModel.control(league_id, action, round_id=data.get("roundId")),
        )

    # DELETE /api/auction/<league_id>
    def reset(self, league_id: str):
        return self._run("reset auction", lambda: self.auctionModel.reset(league_id))
