import pytest

from api import create_app
from conftest import FRANCHISE_A, FRANCHISE_B, LEAGUE_ID, make_players

BASE = f"/api/auction/{LEAGUE_ID}"


@pytest.fixture
def client(engine, settings, clock):
    app = create_app(engine, settings=settings, clock=clock)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def live_round(client):
    client.post(f"{BASE}/setup", json={"budget": 5_000_000})
    created = client.post(f"{BASE}/rounds", json={"roundNumber": 1, "name": "Marquee", "players": make_players(3)})
    round_id = created.get_json()["roundId"]
    client.post(f"{BASE}/control", json={"action": "selectRound", "roundId": round_id})
    client.post(f"{BASE}/control", json={"action": "start"})
    return round_id


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_setup_validates_budget(client):
    resp = client.post(f"{BASE}/setup", json={"budget": "lots"})
    assert resp.status_code == 400


def test_setup_unknown_league_is_404(client):
    resp = client.post("/api/auction/nope/setup", json={})
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "NotFound"


def test_full_bid_and_sell_flow(client, live_round):
    resp = client.post(f"{BASE}/bid", json={"franchiseId": FRANCHISE_A})
    assert resp.status_code == 200
    assert resp.get_json()["newBid"] == 2_000_000

    resp = client.post(f"{BASE}/bid", json={"franchiseId": FRANCHISE_B})
    assert resp.get_json()["newBid"] == 2_100_000
    assert resp.get_json()["remainingTimeMs"] == 10_000

    state = client.get(f"{BASE}/state").get_json()
    assert state["state"]["currentBid"] == 2_100_000
    assert state["highestBidder"]["id"] == FRANCHISE_B
    assert state["nextMinimumBid"] == 2_200_000
    assert [p["playerRef"] for p in state["queue"]] == ["P2", "P3"]

    sold = client.post(f"{BASE}/control", json={"action": "sell"}).get_json()
    assert sold["sold"] is True
    assert sold["action"] == "sell"

    again = client.post(f"{BASE}/control", json={"action": "sell"})
    assert again.status_code == 200
    assert again.get_json()["alreadyProcessed"] is True

    franchises = client.get(f"{BASE}/franchises").get_json()["franchises"]
    bravo = next(f for f in franchises if f["id"] == FRANCHISE_B)
    assert bravo["purse"] == 2_900_000
    assert bravo["rosterCount"] == 1
    assert [p["playerRef"] for p in bravo["purchases"]] == ["P1"]


def test_bid_requires_franchise(client, live_round):
    resp = client.post(f"{BASE}/bid", json={})
    assert resp.status_code == 400


def test_bid_after_deadline_is_409(client, live_round, clock):
    clock.advance(15_001)
    resp = client.post(f"{BASE}/bid", json={"franchiseId": FRANCHISE_A})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "TimerExpired"


def test_insufficient_funds_reports_amounts(client, live_round):
    client.patch(f"/api/league/{LEAGUE_ID}/franchises/{FRANCHISE_A}", json={"purse": 10})

    resp = client.post(f"{BASE}/bid", json={"franchiseId": FRANCHISE_A})

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "InsufficientFunds"
    assert body["requiredBid"] == 2_000_000
    assert body["purse"] == 10


def test_control_requires_action(client):
    assert client.post(f"{BASE}/control", json={}).status_code == 400


def test_control_unknown_action(client):
    resp = client.post(f"{BASE}/control", json={"action": "explode"})
    assert resp.status_code == 400


def test_control_precondition_is_409(client):
    client.post(f"{BASE}/setup", json={})
    resp = client.post(f"{BASE}/control", json={"action": "start"})
    assert resp.status_code == 409


def test_rounds_listing_counts(client, live_round):
    client.post(f"{BASE}/control", json={"action": "skip"})

    rounds = client.get(f"{BASE}/rounds").get_json()["rounds"]

    assert len(rounds) == 1
    assert rounds[0]["totalPlayers"] == 3
    assert rounds[0]["pendingCount"] == 2
    assert rounds[0]["unsoldCount"] == 1
    assert rounds[0]["isActive"] is True


def test_create_round_missing_fields(client):
    resp = client.post(f"{BASE}/rounds", json={"name": "No number"})
    assert resp.status_code == 400
    assert "roundNumber" in resp.get_json()["message"]


def test_import_players_and_filter(client):
    created = client.post(f"{BASE}/rounds", json={"roundNumber": 1, "name": "Marquee"}).get_json()
    round_id = created["roundId"]

    resp = client.post(f"{BASE}/rounds/{round_id}/players", json={"players": make_players(2), "append": "true"})
    assert resp.get_json()["count"] == 2

    players = client.get(f"{BASE}/players", query_string={"roundId": round_id, "status": "pending"}).get_json()["players"]
    assert [p["playerRef"] for p in players] == ["P1", "P2"]

    bad = client.get(f"{BASE}/players", query_string={"status": "lost"})
    assert bad.status_code == 400


def test_logs_newest_first_with_limit(client, live_round):
    client.post(f"{BASE}/bid", json={"franchiseId": FRANCHISE_A})

    logs = client.get(f"{BASE}/logs", query_string={"limit": 2}).get_json()["logs"]

    assert [l["logType"] for l in logs] == ["bid", "start"]
    assert client.get(f"{BASE}/logs", query_string={"limit": "x"}).status_code == 400


def test_unsold_and_requeue(client, live_round):
    client.post(f"{BASE}/control", json={"action": "skip"})
    unsold = client.get(f"{BASE}/unsold").get_json()["unsold"]
    assert [u["playerRef"] for u in unsold] == ["P1"]
    assert unsold[0]["originalRoundNumber"] == 1

    resp = client.post(f"{BASE}/rounds/{live_round}/requeueUnsold", json={})
    assert resp.get_json()["count"] == 1
    assert client.get(f"{BASE}/unsold").get_json()["unsold"] == []


def test_patch_player(client, live_round):
    players = client.get(f"{BASE}/players", query_string={"status": "pending"}).get_json()["players"]
    resp = client.patch(f"{BASE}/players/{players[0]['id']}", json={"basePrice": 2_500_000})
    assert resp.status_code == 200
    assert resp.get_json()["basePrice"] == 2_500_000


def test_reset_round_and_delete_round(client, live_round):
    assert client.post(f"{BASE}/rounds/{live_round}/reset").status_code == 409
    client.post(f"{BASE}/control", json={"action": "stop"})

    assert client.post(f"{BASE}/rounds/{live_round}/reset").status_code == 200
    assert client.delete(f"{BASE}/rounds/{live_round}").status_code == 200
    assert client.get(f"{BASE}/rounds").get_json()["rounds"] == []


def test_pause_resume_over_http(client, live_round, clock):
    clock.advance(3_000)
    paused = client.post(f"{BASE}/control", json={"action": "pause"}).get_json()
    assert paused["pausedRemainingMs"] == 12_000

    state = client.get(f"{BASE}/state").get_json()
    assert state["remainingTimeMs"] == 12_000

    resumed = client.post(f"{BASE}/control", json={"action": "resume"}).get_json()
    assert resumed["timerEndTime"] == clock.now + 15_000


def test_delete_resets_auction(client, live_round):
    client.post(f"{BASE}/bid", json={"franchiseId": FRANCHISE_A})
    client.post(f"{BASE}/control", json={"action": "sell"})

    resp = client.delete(BASE)

    assert resp.status_code == 200
    franchises = client.get(f"{BASE}/franchises").get_json()["franchises"]
    assert {f["purse"] for f in franchises} == {5_000_000}
    assert all(f["purchases"] == [] for f in franchises)


def test_state_before_setup(client):
    body = client.get(f"{BASE}/state").get_json()
    assert body["initialized"] is False
    assert len(body["franchises"]) == 2
