import pytest
from sqlalchemy import text

from conftest import FRANCHISE_A, FRANCHISE_B, LEAGUE_ID, fetch_all, fetch_one, make_players, seed_league
from endpoints.auction.auctionErrors import (
    InsufficientFunds,
    NoPendingPlayers,
    NotFound,
    PreconditionFailed,
    RosterFull,
    TimerExpired,
)
from endpoints.auction.auctionTypes import CONTROL_ACTIONS, CONTROL_SELECT_ROUND


def _state(engine):
    return fetch_one(engine, 'SELECT * FROM "AuctionState" WHERE "leagueId" = :l', l=LEAGUE_ID)


def _purse(engine, franchise_id):
    return int(fetch_one(engine, 'SELECT purse FROM "Franchise" WHERE id = :f', f=franchise_id)["purse"])


def _player(engine, player_id):
    return fetch_one(engine, 'SELECT * FROM "AuctionPlayer" WHERE id = :p', p=player_id)


def _current_players(engine):
    return fetch_all(engine, 'SELECT id FROM "AuctionPlayer" WHERE status = \'current\'')


# ---------- setup ----------

def test_setup_creates_state_and_sets_purses(model, engine):
    result = model.setup(LEAGUE_ID, 7_000_000)

    assert result["franchiseCount"] == 2
    assert _purse(engine, FRANCHISE_A) == 7_000_000
    assert _purse(engine, FRANCHISE_B) == 7_000_000
    state = _state(engine)
    assert not state["isActive"]
    assert state["currentPlayerId"] is None


def test_setup_is_idempotent_and_defaults_budget(model, engine, settings):
    model.setup(LEAGUE_ID)
    model.setup(LEAGUE_ID)

    assert _purse(engine, FRANCHISE_A) == settings.default_purse
    assert len(fetch_all(engine, 'SELECT id FROM "AuctionState"')) == 1


def test_setup_unknown_league(model):
    with pytest.raises(NotFound):
        model.setup("nope", 1)


# ---------- start / next ----------

def test_start_requires_selected_round(model):
    model.setup(LEAGUE_ID)
    with pytest.raises(PreconditionFailed):
        model.start(LEAGUE_ID)


def test_start_with_empty_queue(model, rounds):
    model.setup(LEAGUE_ID)
    created = rounds.create_round(LEAGUE_ID, 1, "Empty", [])
    model.select_round(LEAGUE_ID, created["roundId"])

    with pytest.raises(NoPendingPlayers):
        model.start(LEAGUE_ID)


def test_start_puts_lowest_order_player_up(running_round, engine, clock, settings):
    state = _state(engine)
    player = _player(engine, state["currentPlayerId"])

    assert player["playerRef"] == "P1"
    assert player["status"] == "current"
    assert state["isActive"]
    assert int(state["timerEndTime"]) == clock.now + settings.initial_timer_ms


def test_start_and_next_refused_while_player_is_current(running_round, model):
    with pytest.raises(PreconditionFailed):
        model.start(LEAGUE_ID)
    with pytest.raises(PreconditionFailed):
        model.next_player(LEAGUE_ID)


# ---------- bidding ----------

def test_sale_scenario(running_round, model, engine):
    first = model.bid(LEAGUE_ID, FRANCHISE_A)
    assert first["newBid"] == 2_000_000

    second = model.bid(LEAGUE_ID, FRANCHISE_B)
    assert second["newBid"] == 2_100_000
    assert second["remainingTimeMs"] == 10_000
    assert second["nextMinimumBid"] == 2_200_000

    player_id = _state(engine)["currentPlayerId"]
    result = model.sell(LEAGUE_ID)

    assert result["sold"] is True
    assert result["sale"]["amount"] == 2_100_000
    assert _purse(engine, FRANCHISE_B) == 5_000_000 - 2_100_000
    assert _purse(engine, FRANCHISE_A) == 5_000_000

    player = _player(engine, player_id)
    assert player["status"] == "sold"
    assert player["soldToFranchiseId"] == FRANCHISE_B
    assert int(player["soldForAmount"]) == 2_100_000

    roster = fetch_all(engine, 'SELECT * FROM "RosterEntry" WHERE "franchiseId" = :f', f=FRANCHISE_B)
    assert [(r["playerRef"], r["acquiredVia"]) for r in roster] == [("P1", "auction")]

    state = _state(engine)
    assert state["currentPlayerId"] is None
    assert int(state["currentBid"]) == 0
    assert state["highestBidderFranchiseId"] is None


def test_bids_increase_by_policy_increment(running_round, model):
    amounts = [model.bid(LEAGUE_ID, f)["newBid"] for f in (FRANCHISE_A, FRANCHISE_B, FRANCHISE_A, FRANCHISE_B)]
    assert amounts == [2_000_000, 2_100_000, 2_200_000, 2_300_000]


def test_bid_resets_timer_to_bid_window(running_round, model, engine, clock):
    clock.advance(12_000)
    result = model.bid(LEAGUE_ID, FRANCHISE_A)
    assert result["timerEndTime"] == clock.now + 10_000
    assert int(_state(engine)["timerEndTime"]) == clock.now + 10_000


def test_bid_after_deadline_is_rejected(running_round, model, engine, clock):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    clock.advance(10_001)

    with pytest.raises(TimerExpired):
        model.bid(LEAGUE_ID, FRANCHISE_B)

    assert int(_state(engine)["currentBid"]) == 2_000_000
    assert _state(engine)["highestBidderFranchiseId"] == FRANCHISE_A


def test_bid_exactly_at_deadline_is_accepted(running_round, model, clock):
    clock.advance(15_000)
    assert model.bid(LEAGUE_ID, FRANCHISE_A)["newBid"] == 2_000_000


def test_bid_requires_active_auction(model):
    model.setup(LEAGUE_ID)
    with pytest.raises(PreconditionFailed):
        model.bid(LEAGUE_ID, FRANCHISE_A)


def test_bid_before_setup(model):
    with pytest.raises(PreconditionFailed):
        model.bid(LEAGUE_ID, FRANCHISE_A)


def test_bid_from_unknown_franchise(running_round, model):
    with pytest.raises(NotFound):
        model.bid(LEAGUE_ID, "ghost")


def test_bid_from_franchise_in_other_league(running_round, model, engine):
    seed_league(engine, league_id="league-2", franchises=(("franchise-z", "Zulu"),))
    with pytest.raises(NotFound):
        model.bid(LEAGUE_ID, "franchise-z")


def test_bid_beyond_purse(running_round, model, engine):
    with engine.begin() as conn:
        conn.execute(text('UPDATE "Franchise" SET purse = 1000000 WHERE id = :f'), {"f": FRANCHISE_A})

    with pytest.raises(InsufficientFunds) as exc:
        model.bid(LEAGUE_ID, FRANCHISE_A)

    assert exc.value.details == {"requiredBid": 2_000_000, "purse": 1_000_000}
    assert int(_state(engine)["currentBid"]) == 0


def test_bid_on_unknown_league_is_not_found(model):
    with pytest.raises(NotFound):
        model.bid("no-such-league", FRANCHISE_A)


def test_sale_to_winner_whose_roster_filled_goes_unsold(running_round, model, engine, queries):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    with engine.begin() as conn:
        conn.execute(text('UPDATE "League" SET "rosterSize" = 1 WHERE id = :l'), {"l": LEAGUE_ID})
        conn.execute(
            text("""
                INSERT INTO "RosterEntry" (id, "franchiseId", "playerRef", "acquiredVia")
                VALUES ('r1', :f, 'X', 'trade')
            """),
            {"f": FRANCHISE_A},
        )

    result = model.sell(LEAGUE_ID)

    assert result["unsold"] is True
    assert result["rosterFull"] == {"franchiseId": FRANCHISE_A, "rosterCount": 1, "rosterSize": 1}
    assert _purse(engine, FRANCHISE_A) == 5_000_000
    assert _current_players(engine) == []
    state = _state(engine)
    assert state["currentPlayerId"] is None
    assert state["highestBidderFranchiseId"] is None
    assert [u["playerRef"] for u in queries.get_unsold(LEAGUE_ID)] == ["P1"]


def test_bid_with_full_roster(model, rounds, engine):
    with engine.begin() as conn:
        conn.execute(text('UPDATE "League" SET "rosterSize" = 1 WHERE id = :l'), {"l": LEAGUE_ID})
        conn.execute(
            text("""
                INSERT INTO "RosterEntry" (id, "franchiseId", "playerRef", "acquiredVia")
                VALUES ('r1', :f, 'X', 'draft')
            """),
            {"f": FRANCHISE_A},
        )

    model.setup(LEAGUE_ID, 5_000_000)
    created = rounds.create_round(LEAGUE_ID, 1, "Marquee", make_players(1))
    model.select_round(LEAGUE_ID, created["roundId"])
    model.start(LEAGUE_ID)

    with pytest.raises(RosterFull) as exc:
        model.bid(LEAGUE_ID, FRANCHISE_A)
    assert exc.value.details == {"rosterCount": 1, "rosterSize": 1}

    # Dropped players do not count
    with engine.begin() as conn:
        conn.execute(text('UPDATE "RosterEntry" SET "droppedAt" = CURRENT_TIMESTAMP WHERE id = \'r1\''))
    assert model.bid(LEAGUE_ID, FRANCHISE_A)["newBid"] == 2_000_000


def test_bid_writes_audit_log(running_round, model, queries):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    logs = queries.get_logs(LEAGUE_ID)

    assert logs[0]["logType"] == "bid"
    assert int(logs[0]["amount"]) == 2_000_000
    assert logs[0]["franchiseName"] == "Alpha"


def test_log_failure_does_not_undo_bid(running_round, model, engine, caplog):
    with engine.begin() as conn:
        conn.execute(text('ALTER TABLE "AuctionLog" RENAME TO "AuctionLogMissing"'))

    result = model.bid(LEAGUE_ID, FRANCHISE_A)

    assert result["newBid"] == 2_000_000
    assert int(_state(engine)["currentBid"]) == 2_000_000
    assert "Failed to write 1 auction log entries" in caplog.text


# ---------- resolve ----------

def test_sell_without_bids_goes_unsold(running_round, model, engine, queries):
    player_id = _state(engine)["currentPlayerId"]
    result = model.sell(LEAGUE_ID)

    assert result["unsold"] is True
    assert _player(engine, player_id)["status"] == "unsold"
    assert [u["auctionPlayerId"] for u in queries.get_unsold(LEAGUE_ID)] == [player_id]


def test_double_sell_debits_once(running_round, model, engine):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    first = model.sell(LEAGUE_ID)
    second = model.sell(LEAGUE_ID)

    assert first["sold"] is True
    assert second["alreadyProcessed"] is True
    assert _purse(engine, FRANCHISE_A) == 3_000_000


def test_timer_expired_refuses_running_timer(running_round, model, clock):
    clock.advance(14_000)
    with pytest.raises(PreconditionFailed) as exc:
        model.timer_expired(LEAGUE_ID)
    assert exc.value.details["remainingTimeMs"] == 1_000


def test_timer_expired_sells_after_deadline(running_round, model, engine, clock):
    model.bid(LEAGUE_ID, FRANCHISE_B)
    clock.advance(10_001)

    result = model.timer_expired(LEAGUE_ID)

    assert result["sold"] is True
    assert _purse(engine, FRANCHISE_B) == 3_000_000


def test_sell_ignores_clock(running_round, model):
    model.bid(LEAGUE_ID, FRANCHISE_B)
    assert model.sell(LEAGUE_ID)["sold"] is True


def test_sale_rechecks_purse(running_round, model, engine):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    with engine.begin() as conn:
        conn.execute(text('UPDATE "Franchise" SET purse = 100 WHERE id = :f'), {"f": FRANCHISE_A})

    with pytest.raises(InsufficientFunds):
        model.sell(LEAGUE_ID)

    # Rolled back as a whole: player still up, purse untouched
    state = _state(engine)
    assert _player(engine, state["currentPlayerId"])["status"] == "current"
    assert _purse(engine, FRANCHISE_A) == 100
    assert fetch_all(engine, 'SELECT id FROM "RosterEntry"') == []


# ---------- skip / next / round completion ----------

def test_skip_then_next(running_round, model, engine, queries):
    skipped_id = _state(engine)["currentPlayerId"]

    result = model.skip(LEAGUE_ID)
    assert result["unsold"] is True
    assert _player(engine, skipped_id)["status"] == "unsold"
    assert _state(engine)["currentPlayerId"] is None
    assert [u["auctionPlayerId"] for u in queries.get_unsold(LEAGUE_ID)] == [skipped_id]

    nxt = model.next_player(LEAGUE_ID)
    assert nxt["roundComplete"] is False
    assert nxt["player"]["playerRef"] == "P2"
    assert _player(engine, nxt["player"]["id"])["status"] == "current"


def test_skip_with_bids_still_goes_unsold(running_round, model, engine):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    model.skip(LEAGUE_ID)

    assert _purse(engine, FRANCHISE_A) == 5_000_000
    assert int(_state(engine)["currentBid"]) == 0


def test_round_completion_is_terminal(running_round, model, rounds, engine):
    for _ in range(3):
        model.skip(LEAGUE_ID)
        result = model.next_player(LEAGUE_ID)

    assert result["roundComplete"] is True
    rnd = fetch_one(engine, 'SELECT * FROM "AuctionRound" WHERE id = :r', r=running_round)
    assert rnd["isCompleted"] and not rnd["isActive"]
    assert _state(engine)["currentRoundId"] is None

    with pytest.raises(PreconditionFailed):
        model.next_player(LEAGUE_ID)
    with pytest.raises(PreconditionFailed):
        model.select_round(LEAGUE_ID, running_round)
    with pytest.raises(PreconditionFailed):
        rounds.import_players(LEAGUE_ID, running_round, make_players(1, prefix="N"))


def test_at_most_one_current_player(running_round, model, rounds, engine):
    assert len(_current_players(engine)) == 1

    other = rounds.create_round(LEAGUE_ID, 2, "Second", make_players(2, prefix="S"))
    model.select_round(LEAGUE_ID, other["roundId"])
    assert len(_current_players(engine)) == 0

    model.start(LEAGUE_ID)
    model.skip(LEAGUE_ID)
    model.next_player(LEAGUE_ID)
    assert len(_current_players(engine)) == 1


# ---------- pause / resume ----------

def test_pause_and_resume_rearms_full_timer(running_round, model, engine, clock, settings):
    clock.advance(5_000)
    paused = model.pause(LEAGUE_ID)
    assert paused["pausedRemainingMs"] == 10_000

    with pytest.raises(PreconditionFailed):
        model.bid(LEAGUE_ID, FRANCHISE_A)
    with pytest.raises(PreconditionFailed):
        model.pause(LEAGUE_ID)

    clock.advance(60_000)
    resumed = model.resume(LEAGUE_ID)
    assert resumed["timerEndTime"] == clock.now + settings.initial_timer_ms
    assert not _state(engine)["isPaused"]

    with pytest.raises(PreconditionFailed):
        model.resume(LEAGUE_ID)


def test_timer_expired_refused_while_paused(running_round, model, clock):
    model.pause(LEAGUE_ID)
    clock.advance(60_000)
    with pytest.raises(PreconditionFailed):
        model.timer_expired(LEAGUE_ID)


# ---------- stop / end round ----------

def test_stop_returns_player_to_queue(running_round, model, engine):
    player_id = _state(engine)["currentPlayerId"]
    model.bid(LEAGUE_ID, FRANCHISE_A)

    model.stop(LEAGUE_ID)

    state = _state(engine)
    assert not state["isActive"]
    assert state["currentPlayerId"] is None
    assert state["currentRoundId"] == running_round
    assert _player(engine, player_id)["status"] == "pending"

    # Same player comes back up first
    assert model.start(LEAGUE_ID)["player"]["id"] == player_id


def test_end_round_deselects_round(running_round, model, engine):
    model.end_round(LEAGUE_ID)

    state = _state(engine)
    assert state["currentRoundId"] is None
    rnd = fetch_one(engine, 'SELECT * FROM "AuctionRound" WHERE id = :r', r=running_round)
    assert not rnd["isActive"]
    assert not rnd["isCompleted"]


# ---------- control dispatcher ----------

def test_control_accepts_camel_case_actions(model, rounds):
    model.setup(LEAGUE_ID)
    created = rounds.create_round(LEAGUE_ID, 1, "Marquee", make_players(1))

    result = model.control(LEAGUE_ID, "selectRound", round_id=created["roundId"])
    assert result["action"] == "select_round"

    with pytest.raises(ValueError):
        model.control(LEAGUE_ID, "selectRound")
    with pytest.raises(ValueError):
        model.control(LEAGUE_ID, "explode")


@pytest.mark.parametrize("action", [a for a in CONTROL_ACTIONS if a != CONTROL_SELECT_ROUND])
def test_control_dispatches_every_known_action(model, action):
    model.setup(LEAGUE_ID)
    try:
        result = model.control(LEAGUE_ID, action)
    except PreconditionFailed:
        return
    assert result["action"] == action


# ---------- reset ----------

def test_reset_is_idempotent(running_round, model, engine, settings):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    model.sell(LEAGUE_ID)
    model.next_player(LEAGUE_ID)
    model.skip(LEAGUE_ID)

    def snapshot():
        return (
            fetch_all(engine, 'SELECT id, status, "soldToFranchiseId" FROM "AuctionPlayer" ORDER BY id'),
            fetch_all(engine, 'SELECT id, purse FROM "Franchise" ORDER BY id'),
            fetch_all(engine, 'SELECT "isActive", "isCompleted" FROM "AuctionRound"'),
            fetch_all(engine, 'SELECT "isActive", "currentPlayerId", "currentBid", "currentRoundId" FROM "AuctionState"'),
            fetch_all(engine, 'SELECT id FROM "RosterEntry"'),
            fetch_all(engine, 'SELECT id FROM "UnsoldPlayer"'),
            fetch_all(engine, 'SELECT id FROM "AuctionLog"'),
        )

    model.reset(LEAGUE_ID)
    once = snapshot()
    model.reset(LEAGUE_ID)
    twice = snapshot()

    assert once == twice
    players, franchises, rounds_, states, roster, unsold, logs = once
    assert {p["status"] for p in players} == {"pending"}
    assert all(p["soldToFranchiseId"] is None for p in players)
    assert {int(f["purse"]) for f in franchises} == {settings.default_purse}
    assert all(not r["isActive"] for r in rounds_)
    assert len(states) == 1 and states[0]["currentPlayerId"] is None
    assert roster == [] and unsold == [] and logs == []


def test_reset_keeps_non_auction_roster_entries(model, engine):
    with engine.begin() as conn:
        conn.execute(
            text("""
                INSERT INTO "RosterEntry" (id, "franchiseId", "playerRef", "acquiredVia")
                VALUES ('keep', :f, 'X', 'trade')
            """),
            {"f": FRANCHISE_A},
        )

    model.reset(LEAGUE_ID)
    assert [r["id"] for r in fetch_all(engine, 'SELECT id FROM "RosterEntry"')] == ["keep"]
