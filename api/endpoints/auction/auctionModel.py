# endpoints/auction/auctionModel.py
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

from config import settings as app_settings
from endpoints.auction.auctionErrors import (
    InsufficientFunds,
    NoPendingPlayers,
    PreconditionFailed,
    RosterFull,
    StateConflict,
    TimerExpired,
)
from endpoints.auction.auctionLocks import bid_serializer, control_serializer
from endpoints.auction.auctionStore import CLEARED_BIDDING, AuctionStore, log_entry, new_id
from endpoints.auction.auctionTypes import (
    ACQUIRED_VIA_AUCTION,
    CONTROL_ACTIONS,
    CONTROL_END_ROUND,
    CONTROL_NEXT,
    CONTROL_PAUSE,
    CONTROL_RESUME,
    CONTROL_SELECT_ROUND,
    CONTROL_SELL,
    CONTROL_SKIP,
    CONTROL_START,
    CONTROL_STOP,
    CONTROL_TIMER_EXPIRED,
    LOG_BID,
    LOG_END_ROUND,
    LOG_NEXT,
    LOG_PAUSE,
    LOG_RESUME,
    LOG_ROUND_COMPLETE,
    LOG_SALE,
    LOG_SELECT_ROUND,
    LOG_SETUP,
    LOG_START,
    LOG_STOP,
    LOG_UNSOLD,
    STATUS_CURRENT,
    STATUS_PENDING,
    STATUS_SOLD,
    format_amount,
    normalize_control_action,
)
from endpoints.auction.pricingPolicy import PricingPolicy
from utils.clock import now_ms

logger = logging.getLogger(__name__)

ControlStep = Callable[[Any, Dict[str, Any]], Tuple[Dict[str, Any], List[Dict[str, Any]]]]


def _player_brief(player: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": player["id"],
        "playerRef": player["playerRef"],
        "name": player["name"],
        "team": player["team"],
        "position": player["position"],
        "category": player["category"],
        "basePrice": int(player["basePrice"]),
    }


class AuctionModel:
    """
    The auction state machine. The only writer of "AuctionState" and of
    "AuctionPlayer".status while a round is running.

    Each operation holds its serializer, runs its reads, checks and writes in
    one transaction, and writes the audit log only after that commits.
    """

    def __init__(
        self,
        db: Engine,
        settings=None,
        pricing: Optional[PricingPolicy] = None,
        bid_lock=None,
        control_lock=None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.db = db
        self.settings = settings or app_settings
        self.pricing = pricing or PricingPolicy.from_settings(self.settings)
        self.bid_lock = bid_lock or bid_serializer(self.settings)
        self.control_lock = control_lock or control_serializer(self.settings)
        self.clock = clock or now_ms
        self.store = AuctionStore(db)

    # ---------- plumbing ----------

    def _run_control(self, league_id: str, action: str, step: ControlStep) -> Dict[str, Any]:
        with self.control_lock.hold(reason=f"{action} league={league_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                state = self.store.ensure_state(conn, league_id)
                result, logs = step(conn, state)
                self.store.notify(conn, league_id, action)

        self.store.append_logs(logs)
        logger.debug("Auction %s for league %s -> %s", action, league_id, result)
        return result

    def _roster_cap(self, league: Dict[str, Any]) -> int:
        return int(league.get("rosterSize") or self.settings.default_roster_size)

    def _return_current_to_queue(self, conn, state: Dict[str, Any]) -> None:
        if state["currentPlayerId"]:
            self.store.transition_player(conn, state["currentPlayerId"], STATUS_CURRENT, STATUS_PENDING)

    def _bring_up_next(self, conn, state: Dict[str, Any], player: Dict[str, Any]) -> Dict[str, Any]:
        if not self.store.transition_player(conn, player["id"], STATUS_PENDING, STATUS_CURRENT):
            raise StateConflict("Queue changed while picking the next player, retry")

        now = self.clock()
        self.store.update_state(
            conn,
            state,
            isActive=True,
            isPaused=False,
            currentPlayerId=player["id"],
            currentBid=0,
            highestBidderFranchiseId=None,
            timerEndTime=now + self.settings.initial_timer_ms,
            pausedRemainingMs=None,
        )
        return {
            "player": _player_brief(player),
            "timerEndTime": now + self.settings.initial_timer_ms,
            "remainingTimeMs": self.settings.initial_timer_ms,
        }

    # ---------- setup / reset ----------

    def setup(self, league_id: str, budget: Optional[int] = None) -> Dict[str, Any]:
        """
        Idempotent. Creates or empties the league's auction state and gives
        every franchise the same purse.
        """
        budget = self.settings.default_purse if budget is None else int(budget)
        if budget < 0:
            raise ValueError("budget cannot be negative")

        def step(conn, state):
            self._return_current_to_queue(conn, state)
            self.store.update_state(
                conn,
                state,
                isActive=False,
                isPaused=False,
                currentRoundId=None,
                **CLEARED_BIDDING,
            )
            result = conn.execute(
                text('UPDATE "Franchise" SET purse = :budget WHERE "leagueId" = :leagueId'),
                {"budget": budget, "leagueId": league_id},
            )
            message = f"Auction setup. Team budgets: {format_amount(budget)}"
            return (
                {
                    "leagueId": league_id,
                    "budget": budget,
                    "franchiseCount": result.rowcount,
                    "message": message,
                },
                [log_entry(league_id, None, LOG_SETUP, message, amount=budget)],
            )

        return self._run_control(league_id, "setup", step)

    def reset(self, league_id: str) -> Dict[str, Any]:
        """
        Full teardown: logs and unsold pool wiped, every player pending, rounds
        cleared, auction roster entries removed and purses back to default.
        """
        budget = self.settings.default_purse

        with self.control_lock.hold(reason=f"reset league={league_id}"):
            with self.db.begin() as conn:
                self.store.require_league(conn, league_id)
                state = self.store.ensure_state(conn, league_id)

                self.store.update_state(
                    conn,
                    state,
                    isActive=False,
                    isPaused=False,
                    currentRoundId=None,
                    **CLEARED_BIDDING,
                )

                params = {"leagueId": league_id}
                conn.execute(text('DELETE FROM "AuctionLog" WHERE "leagueId" = :leagueId'), params)
                conn.execute(text('DELETE FROM "UnsoldPlayer" WHERE "leagueId" = :leagueId'), params)
                conn.execute(
                    text("""
                        UPDATE "AuctionPlayer"
                        SET status = :pending,
                            "soldToFranchiseId" = NULL,
                            "soldForAmount" = NULL,
                            "soldAt" = NULL
                        WHERE "leagueId" = :leagueId
                    """),
                    {**params, "pending": STATUS_PENDING},
                )
                conn.execute(
                    text("""
                        UPDATE "AuctionRound"
                        SET "isActive" = :false, "isCompleted" = :false
                        WHERE "leagueId" = :leagueId
                    """),
                    {**params, "false": False},
                )
                conn.execute(
                    text("""
                        DELETE FROM "RosterEntry"
                        WHERE "acquiredVia" = :via
                          AND "franchiseId" IN (
                            SELECT id FROM "Franchise" WHERE "leagueId" = :leagueId
                          )
                    """),
                    {**params, "via": ACQUIRED_VIA_AUCTION},
                )
                conn.execute(
                    text('UPDATE "Franchise" SET purse = :budget WHERE "leagueId" = :leagueId'),
                    {**params, "budget": budget},
                )
                self.store.notify(conn, league_id, "reset")

        logger.info("Auction reset for league %s", league_id)
        return {
            "leagueId": league_id,
            "budget": budget,
            "message": f"Auction reset. Budgets: {format_amount(budget)}",
        }

    # ---------- bidding ----------

    def bid(self, league_id: str, franchise_id: str) -> Dict[str, Any]:
        """
        Raises the current player's price to the next legal amount for
        `franchise_id`. The opening bid is the base price; later bids add the
        pricing-policy increment. Every check runs before the single write.
        """
        with self.bid_lock.hold(reason=f"bid league={league_id} franchise={franchise_id}"):
            with self.db.begin() as conn:
                league = self.store.require_league(conn, league_id)
                state = self.store.get_state(conn, league_id)
                if not state:
                    raise PreconditionFailed("Auction not initialized")
                if not state["isActive"]:
                    raise PreconditionFailed("Auction is not active")
                if state["isPaused"]:
                    raise PreconditionFailed("Auction is paused")
                if not state["currentPlayerId"]:
                    raise PreconditionFailed("No player up for bidding")

                now = self.clock()
                if state["timerEndTime"] is not None and now > state["timerEndTime"]:
                    raise TimerExpired(
                        "Timer expired",
                        {"timerEndTime": state["timerEndTime"]},
                    )

                franchise = self.store.require_franchise(conn, league_id, franchise_id)

                roster_size = self._roster_cap(league)
                roster_count = self.store.roster_count(conn, franchise_id)
                if roster_count >= roster_size:
                    raise RosterFull(
                        f"{franchise['name']} roster is full ({roster_count}/{roster_size})",
                        {"rosterCount": roster_count, "rosterSize": roster_size},
                    )

                player = self.store.get_player(conn, state["currentPlayerId"])
                required_bid = self.pricing.next_bid(state["currentBid"], int(player["basePrice"]))

                if franchise["purse"] < required_bid:
                    raise InsufficientFunds(
                        f"{franchise['name']} cannot afford {format_amount(required_bid)}",
                        {"requiredBid": required_bid, "purse": franchise["purse"]},
                    )

                timer_end = now + self.settings.bid_timer_ms
                self.store.update_state(
                    conn,
                    state,
                    currentBid=required_bid,
                    highestBidderFranchiseId=franchise_id,
                    timerEndTime=timer_end,
                )
                self.store.notify(conn, league_id, "bid")

        self.store.append_logs([
            log_entry(
                league_id,
                state["currentRoundId"],
                LOG_BID,
                f"{franchise['name']} bids {format_amount(required_bid)} for {player['name']}",
                franchise_id=franchise_id,
                auction_player_id=player["id"],
                amount=required_bid,
            )
        ])

        return {
            "newBid": required_bid,
            "franchiseId": franchise_id,
            "franchiseName": franchise["name"],
            "auctionPlayerId": player["id"],
            "timerEndTime": timer_end,
            "remainingTimeMs": self.settings.bid_timer_ms,
            "nextMinimumBid": required_bid + self.pricing.increment(required_bid),
        }

    # ---------- control actions ----------

    def select_round(self, league_id: str, round_id: str) -> Dict[str, Any]:
        def step(conn, state):
            rnd = self.store.require_round(conn, league_id, round_id)
            if rnd["isCompleted"]:
                raise PreconditionFailed(
                    f"Round {rnd['roundNumber']} is completed; reset it before selecting it again"
                )

            self._return_current_to_queue(conn, state)

            previous = state["currentRoundId"]
            if previous and previous != round_id:
                conn.execute(
                    text('UPDATE "AuctionRound" SET "isActive" = :false WHERE id = :roundId'),
                    {"false": False, "roundId": previous},
                )

            self.store.update_state(
                conn,
                state,
                isActive=False,
                isPaused=False,
                currentRoundId=round_id,
                **CLEARED_BIDDING,
            )
            conn.execute(
                text('UPDATE "AuctionRound" SET "isActive" = :true WHERE id = :roundId'),
                {"true": True, "roundId": round_id},
            )

            message = f"Round {rnd['roundNumber']}: {rnd['name']} selected"
            return (
                {
                    "roundId": round_id,
                    "roundNumber": rnd["roundNumber"],
                    "roundName": rnd["name"],
                    "message": message,
                },
                [log_entry(league_id, round_id, LOG_SELECT_ROUND, message)],
            )

        return self._run_control(league_id, CONTROL_SELECT_ROUND, step)

    def start(self, league_id: str) -> Dict[str, Any]:
        def step(conn, state):
            if not state["currentRoundId"]:
                raise PreconditionFailed("Select a round first")
            if state["currentPlayerId"]:
                raise PreconditionFailed("A player is already up for bidding")

            player = self.store.next_pending_player(conn, state["currentRoundId"])
            if not player:
                raise NoPendingPlayers("No pending players in this round")

            result = self._bring_up_next(conn, state, player)
            message = (
                f"Auction started! {player['name']} up. "
                f"Base: {format_amount(int(player['basePrice']))}"
            )
            result["message"] = message
            return result, [
                log_entry(league_id, state["currentRoundId"], LOG_START, message, auction_player_id=player["id"])
            ]

        return self._run_control(league_id, CONTROL_START, step)

    def next_player(self, league_id: str) -> Dict[str, Any]:
        """
        Puts the next pending player up. With the queue exhausted the round is
        marked completed and nothing else is selected.
        """
        def step(conn, state):
            round_id = state["currentRoundId"]
            if not round_id:
                raise PreconditionFailed("No round selected")
            if state["currentPlayerId"]:
                raise PreconditionFailed("Sell or skip the current player first")

            player = self.store.next_pending_player(conn, round_id)

            if not player:
                conn.execute(
                    text("""
                        UPDATE "AuctionRound"
                        SET "isCompleted" = :true, "isActive" = :false
                        WHERE id = :roundId
                    """),
                    {"true": True, "false": False, "roundId": round_id},
                )
                self.store.update_state(
                    conn,
                    state,
                    isActive=False,
                    isPaused=False,
                    currentRoundId=None,
                    **CLEARED_BIDDING,
                )
                return (
                    {"roundComplete": True, "roundId": round_id, "message": "Round completed!"},
                    [log_entry(league_id, round_id, LOG_ROUND_COMPLETE, "Round completed!")],
                )

            result = self._bring_up_next(conn, state, player)
            message = f"Next: {player['name']}. Base: {format_amount(int(player['basePrice']))}"
            result["roundComplete"] = False
            result["message"] = message
            return result, [
                log_entry(league_id, round_id, LOG_NEXT, message, auction_player_id=player["id"])
            ]

        return self._run_control(league_id, CONTROL_NEXT, step)

    def pause(self, league_id: str) -> Dict[str, Any]:
        def step(conn, state):
            if not state["isActive"]:
                raise PreconditionFailed("Auction is not active")
            if state["isPaused"]:
                raise PreconditionFailed("Already paused")
            if not state["currentPlayerId"]:
                raise PreconditionFailed("No player up for bidding")

            remaining = 0
            if state["timerEndTime"] is not None:
                remaining = max(0, state["timerEndTime"] - self.clock())

            self.store.update_state(
                conn,
                state,
                isPaused=True,
                pausedRemainingMs=remaining,
                timerEndTime=None,
            )
            return (
                {"isPaused": True, "pausedRemainingMs": remaining, "message": "Paused"},
                [log_entry(league_id, state["currentRoundId"], LOG_PAUSE, "Auction paused")],
            )

        return self._run_control(league_id, CONTROL_PAUSE, step)

    def resume(self, league_id: str) -> Dict[str, Any]:
        """Un-pauses with a fresh full timer, not the time left at pause."""
        def step(conn, state):
            if not state["isPaused"]:
                raise PreconditionFailed("Not paused")

            timer_end = None
            if state["currentPlayerId"]:
                timer_end = self.clock() + self.settings.initial_timer_ms

            self.store.update_state(
                conn,
                state,
                isPaused=False,
                pausedRemainingMs=None,
                timerEndTime=timer_end,
            )
            return (
                {"isPaused": False, "timerEndTime": timer_end, "message": "Resumed (timer reset)"},
                [log_entry(league_id, state["currentRoundId"], LOG_RESUME, "Resumed (timer reset)")],
            )

        return self._run_control(league_id, CONTROL_RESUME, step)

    def skip(self, league_id: str) -> Dict[str, Any]:
        """Current player goes unsold whatever the bids; the queue does not advance."""
        def step(conn, state):
            if not state["currentPlayerId"]:
                raise PreconditionFailed("No current player")

            player = self.store.get_player(conn, state["currentPlayerId"])
            if not self.store.mark_unsold(conn, player):
                return {"alreadyProcessed": True, "message": "Already processed"}, []

            self.store.update_state(conn, state, **CLEARED_BIDDING)
            message = f"{player['name']} skipped (unsold)"
            return (
                {"unsold": True, "player": _player_brief(player), "message": f"{player['name']} unsold. Click Next."},
                [log_entry(league_id, state["currentRoundId"], LOG_UNSOLD, message, auction_player_id=player["id"])],
            )

        return self._run_control(league_id, CONTROL_SKIP, step)

    def sell(self, league_id: str) -> Dict[str, Any]:
        return self._run_control(
            league_id,
            CONTROL_SELL,
            lambda conn, state: self._resolve(conn, state, check_timer=False),
        )

    def timer_expired(self, league_id: str) -> Dict[str, Any]:
        """Same as sell, but only once the stored deadline has really passed."""
        return self._run_control(
            league_id,
            CONTROL_TIMER_EXPIRED,
            lambda conn, state: self._resolve(conn, state, check_timer=True),
        )

    def _resolve(self, conn, state: Dict[str, Any], check_timer: bool):
        league_id = state["leagueId"]
        round_id = state["currentRoundId"]

        if not state["currentPlayerId"]:
            # The caller that won the race already cleared the block.
            return {"alreadyProcessed": True, "message": "No current player"}, []

        if check_timer:
            if state["isPaused"]:
                raise PreconditionFailed("Auction is paused")
            now = self.clock()
            if state["timerEndTime"] is not None and now <= state["timerEndTime"]:
                raise PreconditionFailed(
                    "Timer still running",
                    {"remainingTimeMs": state["timerEndTime"] - now},
                )

        player = self.store.get_player(conn, state["currentPlayerId"])
        if player["status"] != STATUS_CURRENT:
            return {"alreadyProcessed": True, "message": "Already processed"}, []

        winner_id = state["highestBidderFranchiseId"]
        amount = state["currentBid"]

        if not (winner_id and amount > 0):
            return self._resolve_unsold(conn, state, player, f"{player['name']} unsold (no bids)")

        franchise = self.store.require_franchise(conn, league_id, winner_id)
        league = self.store.require_league(conn, league_id)
        roster_size = self._roster_cap(league)
        roster_count = self.store.roster_count(conn, winner_id)
        if roster_count >= roster_size:
            # The winner filled their roster elsewhere after bidding; the bid is void.
            result, logs = self._resolve_unsold(
                conn,
                state,
                player,
                f"{player['name']} unsold ({franchise['name']} roster is full, "
                f"{roster_count}/{roster_size})",
            )
            if not result.get("alreadyProcessed"):
                result["rosterFull"] = {
                    "franchiseId": winner_id,
                    "rosterCount": roster_count,
                    "rosterSize": roster_size,
                }
            return result, logs

        # Race guard: only one resolver moves the row out of 'current'.
        sold = conn.execute(
            text("""
                UPDATE "AuctionPlayer"
                SET status = :sold,
                    "soldToFranchiseId" = :franchiseId,
                    "soldForAmount" = :amount,
                    "soldAt" = CURRENT_TIMESTAMP
                WHERE id = :playerId
                  AND status = :current
            """),
            {
                "sold": STATUS_SOLD,
                "current": STATUS_CURRENT,
                "franchiseId": winner_id,
                "amount": amount,
                "playerId": player["id"],
            },
        )
        if sold.rowcount == 0:
            return {"alreadyProcessed": True, "message": "Already processed"}, []

        debited = conn.execute(
            text("""
                UPDATE "Franchise"
                SET purse = purse - :amount
                WHERE id = :franchiseId
                  AND purse >= :amount
            """),
            {"amount": amount, "franchiseId": winner_id},
        )
        if debited.rowcount != 1:
            # Purse was lowered after the bid; rolls the sale back.
            raise InsufficientFunds(
                f"{franchise['name']} can no longer afford {format_amount(amount)}",
                {"requiredBid": amount, "purse": franchise["purse"]},
            )

        conn.execute(
            text("""
                INSERT INTO "RosterEntry" (id, "franchiseId", "playerRef", "playerName", "acquiredVia")
                VALUES (:id, :franchiseId, :playerRef, :playerName, :via)
            """),
            {
                "id": new_id(),
                "franchiseId": winner_id,
                "playerRef": player["playerRef"],
                "playerName": player["name"],
                "via": ACQUIRED_VIA_AUCTION,
            },
        )

        self.store.update_state(conn, state, **CLEARED_BIDDING)

        message = f"{player['name']} SOLD to {franchise['name']} for {format_amount(amount)}!"
        return (
            {
                "sold": True,
                "sale": {
                    "auctionPlayerId": player["id"],
                    "playerName": player["name"],
                    "franchiseId": winner_id,
                    "franchiseName": franchise["name"],
                    "amount": amount,
                    "remainingPurse": franchise["purse"] - amount,
                },
                "message": f"SOLD to {franchise['name']} for {format_amount(amount)}!",
            },
            [
                log_entry(
                    league_id,
                    round_id,
                    LOG_SALE,
                    message,
                    franchise_id=winner_id,
                    auction_player_id=player["id"],
                    amount=amount,
                )
            ],
        )

    def _resolve_unsold(self, conn, state: Dict[str, Any], player: Dict[str, Any], message: str):
        if not self.store.mark_unsold(conn, player):
            return {"alreadyProcessed": True, "message": "Already processed"}, []
        self.store.update_state(conn, state, **CLEARED_BIDDING)
        return (
            {
                "sold": False,
                "unsold": True,
                "player": _player_brief(player),
                "message": f"{player['name']} unsold. Click Next.",
            },
            [log_entry(state["leagueId"], state["currentRoundId"], LOG_UNSOLD, message, auction_player_id=player["id"])],
        )

    def stop(self, league_id: str) -> Dict[str, Any]:
        """Abandons the session. A player mid-bid goes back to the queue."""
        def step(conn, state):
            self._return_current_to_queue(conn, state)
            self.store.update_state(conn, state, isActive=False, isPaused=False, **CLEARED_BIDDING)
            return (
                {"message": "Stopped"},
                [log_entry(league_id, state["currentRoundId"], LOG_STOP, "Auction stopped")],
            )

        return self._run_control(league_id, CONTROL_STOP, step)

    def end_round(self, league_id: str) -> Dict[str, Any]:
        def step(conn, state):
            self._return_current_to_queue(conn, state)
            if state["currentRoundId"]:
                conn.execute(
                    text('UPDATE "AuctionRound" SET "isActive" = :false WHERE id = :roundId'),
                    {"false": False, "roundId": state["currentRoundId"]},
                )
            self.store.update_state(
                conn,
                state,
                isActive=False,
                isPaused=False,
                currentRoundId=None,
                **CLEARED_BIDDING,
            )
            return (
                {"roundId": state["currentRoundId"], "message": "Round ended"},
                [log_entry(league_id, state["currentRoundId"], LOG_END_ROUND, "Round ended")],
            )

        return self._run_control(league_id, CONTROL_END_ROUND, step)

    def control(self, league_id: str, action: str, round_id: Optional[str] = None) -> Dict[str, Any]:
        action = normalize_control_action(action)
        if action not in CONTROL_ACTIONS:
            raise ValueError(f"Invalid action: {action}")

        if action == CONTROL_SELECT_ROUND:
            if not round_id:
                raise ValueError("roundId is required for select_round")
            result = self.select_round(league_id, round_id)
        else:
            handlers = {
                CONTROL_START: self.start,
                CONTROL_NEXT: self.next_player,
                CONTROL_PAUSE: self.pause,
                CONTROL_RESUME: self.resume,
                CONTROL_SKIP: self.skip,
                CONTROL_SELL: self.sell,
                CONTROL_TIMER_EXPIRED: self.timer_expired,
                CONTROL_STOP: self.stop,
                CONTROL_END_ROUND: self.end_round,
            }
            result = handlers[action](league_id)

        result["action"] = action
        return result
