"""
Pytest fixtures для тестов сервера.
"""
import pytest
from fastapi.testclient import TestClient

from tictactoe.game import GameSession
from tictactoe.main import app
from tictactoe.registry import SessionRegistry, registry
from tictactoe.ws_manager import manager

FIRST_ID = "endpoint-first"
SECOND_ID = "endpoint-second"

# Первый: 1 3 4 8 9, второй: 2 5 6 7, доска заполнена без линии
TIE_MOVES = ["1", "2", "3", "5", "4", "6", "8", "7", "9"]


def play(session: GameSession, moves: list) -> list:
    """Сыграть ходы по очереди, начиная с того, у кого ход."""
    results = []
    for position in moves:
        results.append(session.submit_move(session.turn, position))
    return results


@pytest.fixture
def session() -> GameSession:
    """Запущенная партия, ход у первого."""
    s = GameSession.create(FIRST_ID, SECOND_ID)
    s.start()
    return s


@pytest.fixture
def fresh_registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def full_registry(fresh_registry: SessionRegistry) -> SessionRegistry:
    """Реестр с двумя игроками и начатой партией."""
    fresh_registry.connect(FIRST_ID)
    fresh_registry.connect(SECOND_ID)
    return fresh_registry


@pytest.fixture
def client():
    """TestClient с чистым глобальным реестром и менеджером."""
    registry.release()
    manager.reset()
    with TestClient(app) as c:
        yield c
    registry.release()
    manager.reset()
