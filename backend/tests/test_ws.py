"""
Тесты WebSocket: полный протокол между двумя клиентами и сервером.
"""
from contextlib import contextmanager

import pytest
from starlette.websockets import WebSocketDisconnect

from tictactoe.constants import REJECT_FULL
from tictactoe.registry import registry

from conftest import TIE_MOVES

FIRST_START = {"type": "game_start", "ordinal": "first", "mark": "x"}
SECOND_START = {"type": "game_start", "ordinal": "second", "mark": "o"}
YOUR_TURN = {"type": "turn", "prompt": None}

# Зависший сокет должен ронять тест, а не весь прогон
pytestmark = pytest.mark.timeout(10)


@contextmanager
def two_players(client):
    """Два подключения с начатой партией; ход у первого."""
    with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
        assert first.receive_json() == FIRST_START
        assert first.receive_json() == YOUR_TURN
        assert second.receive_json() == SECOND_START
        yield first, second


def take_turn(mover, other, position):
    """Отправить ход и вернуть board_update, полученный обоими."""
    mover.send_json({"type": "turn_taken", "position": position})
    board = mover.receive_json()
    assert other.receive_json() == board
    return board


def assert_closed(ws, code=1000):
    with pytest.raises(WebSocketDisconnect) as exc:
        ws.receive_json()
    assert exc.value.code == code


class TestHealth:
    def test_health_reports_empty_registry(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "session": "empty"}

    def test_health_while_waiting(self, client):
        with client.websocket_connect("/ws"):
            assert client.get("/health").json()["session"] == "awaiting_second_player"


class TestGameFlow:
    def test_first_player_wins_by_row(self, client):
        with two_players(client) as (first, second):
            players = [first, second]
            for i, position in enumerate(["1", "5", "2", "8"]):
                mover, other = players[i % 2], players[(i + 1) % 2]
                take_turn(mover, other, position)
                assert other.receive_json() == YOUR_TURN

            board = take_turn(first, second, "3")
            assert board == {
                "type": "board_update",
                "board": ["x", "x", "x", ".", "o", ".", ".", "o", "."],
            }
            expected = {
                "type": "game_over",
                "outcome": "won by first player",
                "winner": "first",
                "reason": "line",
            }
            assert first.receive_json() == expected
            assert second.receive_json() == expected
            assert_closed(first)
            assert_closed(second)
        assert registry.session is None

    def test_tie(self, client):
        with two_players(client) as (first, second):
            players = [first, second]
            for i, position in enumerate(TIE_MOVES):
                mover, other = players[i % 2], players[(i + 1) % 2]
                board = take_turn(mover, other, position)
                if i < len(TIE_MOVES) - 1:
                    assert other.receive_json() == YOUR_TURN

            assert "." not in board["board"]
            assert first.receive_json()["outcome"] == "is tied"
            assert second.receive_json()["outcome"] == "is tied"

    def test_integer_position_accepted(self, client):
        with two_players(client) as (first, second):
            board = take_turn(first, second, 9)
            assert board["board"][8] == "x"
            assert second.receive_json() == YOUR_TURN


class TestRejectedMoves:
    def test_out_of_turn_move_gets_error(self, client):
        with two_players(client) as (first, second):
            second.send_json({"type": "turn_taken", "position": "1"})
            assert second.receive_json() == {"type": "error", "reason": "not your turn"}

            # ход всё ещё у первого, клетка 1 свободна
            board = take_turn(first, second, "1")
            assert board["board"][0] == "x"

    @pytest.mark.parametrize("position,prompt", [
        ("abc", "unparseable — enter 1-9"),
        ("0", "out of bounds — enter 1-9"),
        ("10", "out of bounds — enter 1-9"),
    ])
    def test_invalid_position_retries_turn(self, client, position, prompt):
        with two_players(client) as (first, second):
            first.send_json({"type": "turn_taken", "position": position})
            assert first.receive_json() == {"type": "turn", "prompt": prompt}

            board = take_turn(first, second, "5")
            assert board["board"][4] == "x"

    def test_occupied_cell(self, client):
        with two_players(client) as (first, second):
            take_turn(first, second, "5")
            assert second.receive_json() == YOUR_TURN
            second.send_json({"type": "turn_taken", "position": "5"})
            assert second.receive_json() == {
                "type": "turn",
                "prompt": "cell occupied — try again",
            }

    def test_unknown_message_ignored(self, client):
        with two_players(client) as (first, second):
            first.send_json({"type": "ping"})
            board = take_turn(first, second, "2")
            assert board["board"][1] == "x"

    def test_move_before_second_player(self, client):
        with client.websocket_connect("/ws") as first:
            first.send_json({"type": "turn_taken", "position": "1"})
            assert first.receive_json()["type"] == "error"


class TestTermination:
    def test_resign(self, client):
        with two_players(client) as (first, second):
            second.send_json({"type": "resign"})
            expected = {
                "type": "game_over",
                "outcome": "won by first player due to resignation",
                "winner": "first",
                "reason": "resign",
            }
            assert first.receive_json() == expected
            assert second.receive_json() == expected
            assert_closed(first)
            assert_closed(second)

    def test_turn_error_counts_as_disconnect(self, client):
        with two_players(client) as (first, second):
            first.send_json({"type": "turn_error", "error": "readline closed"})
            outcome = "won by second player since first player disconnected"
            assert first.receive_json()["outcome"] == outcome
            assert second.receive_json()["outcome"] == outcome

    def test_malformed_frame_counts_as_disconnect(self, client):
        with two_players(client) as (first, second):
            second.send_text("not json")
            outcome = "won by first player since second player disconnected"
            assert first.receive_json()["outcome"] == outcome

    def test_disconnect_mid_game(self, client):
        with client.websocket_connect("/ws") as first:
            with client.websocket_connect("/ws") as second:
                assert first.receive_json() == FIRST_START
                assert first.receive_json() == YOUR_TURN
                assert second.receive_json() == SECOND_START
                take_turn(first, second, "1")
                assert second.receive_json() == YOUR_TURN

            assert first.receive_json() == {
                "type": "game_over",
                "outcome": "won by first player since second player disconnected",
                "winner": "first",
                "reason": "disconnect",
            }
            assert_closed(first)
        assert client.get("/health").json()["session"] == "empty"

        # новая пара принимается
        with two_players(client) as (first, second):
            board = take_turn(first, second, "5")
            assert board["board"][4] == "x"

    def test_binary_frame_counts_as_disconnect(self, client):
        with two_players(client) as (first, second):
            first.send_bytes(b"\x05")
            assert_closed(first, code=1011)
            assert second.receive_json() == {
                "type": "game_over",
                "outcome": "won by second player since first player disconnected",
                "winner": "second",
                "reason": "disconnect",
            }
            assert_closed(second)
        assert client.get("/health").json()["session"] == "empty"


class TestAdmission:
    def test_third_player_rejected(self, client):
        with two_players(client) as (first, second):
            with client.websocket_connect("/ws") as third:
                assert third.receive_json() == {"type": "reject", "reason": REJECT_FULL}
                assert_closed(third, code=1013)

            # партия продолжается
            board = take_turn(first, second, "1")
            assert board["board"][0] == "x"
            assert second.receive_json() == YOUR_TURN

    def test_first_player_leaving_before_second_frees_slot(self, client):
        with client.websocket_connect("/ws"):
            assert client.get("/health").json()["session"] == "awaiting_second_player"
        assert client.get("/health").json()["session"] == "empty"

        # следующий подключившийся снова первый
        with two_players(client) as (first, second):
            board = take_turn(first, second, "9")
            assert board["board"][8] == "x"
            assert second.receive_json() == YOUR_TURN
