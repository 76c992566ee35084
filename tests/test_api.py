import pytest
from fastapi.testclient import TestClient

import api
from conftest import stack_shoe
from game_service import GameService
from settings import GameConfiguration


@pytest.fixture
def table(monkeypatch):
    game = GameService(GameConfiguration(seed=7))
    monkeypatch.setattr(api, "game", game)
    return game


@pytest.fixture
def client(table):
    return TestClient(api.app)


def test_full_round(client, table):
    stack_shoe(table.shoe_manager.current_shoe, "10", "9", "9", "8")

    response = client.post("/game", json={"players": ["Alice"]})
    assert response.status_code == 200
    assert response.json()["phase"] == "betting_open"

    response = client.post("/bet", json={"player": "Alice", "amount": 10})
    assert response.status_code == 200
    assert response.json()["bankroll"]["amount"] == 990
    assert response.json()["phase"] == "initial_deal"

    state = client.post("/deal").json()
    assert state["current_player"] == "Alice"
    assert state["dealer"]["cards"][1] == "??"

    action = client.post("/stand", json={"player": "Alice"}).json()
    assert action["phase"] == "dealer_turn"

    state = client.post("/dealer").json()
    assert state["dealer"]["hole_card_hidden"] is False

    summary = client.get("/results").json()
    assert summary["players"][0]["hands"][0]["result"] == "win"
    assert client.get("/bankroll/alice").json()["bankroll"]["amount"] == 1010


def test_state_before_first_game(client):
    assert client.get("/state").json() is None


@pytest.mark.parametrize(
    "path, body, status, error",
    [
        ("/game", {"players": []}, 400, "InvalidArgument"),
        ("/bet", {"player": "Alice", "amount": 10}, 409, "BettingPhaseError"),
        ("/deal", None, 409, "InvalidOperation"),
        ("/hit", {"player": "Alice"}, 409, "InvalidPlayerAction"),
    ],
)
def test_errors_map_to_status_codes(client, path, body, status, error):
    response = client.post(path, json=body)
    assert response.status_code == status
    assert response.json()["error"] == error


def test_insufficient_funds_is_402(client):
    client.put("/bankroll/Alice", json={"amount": 20})
    client.post("/game", json={"players": ["Alice"]})
    response = client.post("/bet", json={"player": "Alice", "amount": 50})
    assert response.status_code == 402
    assert response.json()["error"] == "InsufficientFunds"


def test_empty_shoe_is_503(monkeypatch, client):
    game = GameService(GameConfiguration(seed=7, num_decks=1, auto_reshuffle_enabled=False))
    monkeypatch.setattr(api, "game", game)
    shoe = game.shoe_manager.current_shoe
    while not shoe.is_empty:
        shoe.draw()
    client.post("/game", json={"players": ["Alice"]})
    client.post("/bet", json={"player": "Alice", "amount": 10})

    response = client.post("/deal")
    assert response.status_code == 503

    status = client.post("/reshuffle", json={"reason": "new shoe"}).json()
    assert status["remaining_cards"] == 52
    assert client.post("/deal").status_code == 200


def test_leave_before_betting(client):
    client.post("/game", json={"players": ["Alice", "Bob"]})
    client.post("/bet", json={"player": "Alice", "amount": 10})

    state = client.post("/leave", json={"player": "Bob"}).json()
    assert state["phase"] == "initial_deal"
    assert client.post("/deal").status_code == 200


def test_set_bankroll(client):
    response = client.put("/bankroll/Bob", json={"amount": 250})
    assert response.json()["bankroll"]["amount"] == 250
    assert client.put("/bankroll/Bob", json={"amount": -5}).status_code == 400
