"""
Партия крестиков-ноликов: доска, слоты игроков, право хода.
Партия является единственным владельцем состояния игры. Наружу она отдаёт конверты
(endpoint_id + payload), которые доставляет слой WebSocket.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import BOARD_SIZE, EMPTY, FIRST_MARK, LINES, MARK_SCORES, SECOND_MARK

logger = logging.getLogger(__name__)

# Только ASCII-цифры с необязательным знаком: "1_0" и "٣" не номера клеток
_POSITION_RE = re.compile(r"[+-]?[0-9]+")


class Slot(str, Enum):
    FIRST = "first"
    SECOND = "second"

    @property
    def mark(self) -> str:
        return FIRST_MARK if self is Slot.FIRST else SECOND_MARK

    @property
    def other(self) -> "Slot":
        return Slot.SECOND if self is Slot.FIRST else Slot.FIRST


class SessionState(str, Enum):
    EMPTY = "empty"
    AWAITING_SECOND_PLAYER = "awaiting_second_player"
    IN_PROGRESS = "in_progress"
    TERMINATED = "terminated"


class RejectReason(str, Enum):
    NOT_YOUR_TURN = "not_your_turn"
    UNPARSEABLE = "unparseable"
    OUT_OF_BOUNDS = "out_of_bounds"
    OCCUPIED = "occupied"
    NOT_IN_PROGRESS = "not_in_progress"


# Текст, с которым игроку повторно выдаётся ход
RETRY_PROMPTS: dict[RejectReason, str] = {
    RejectReason.NOT_YOUR_TURN: "not your turn",
    RejectReason.UNPARSEABLE: "unparseable — enter 1-9",
    RejectReason.OUT_OF_BOUNDS: "out of bounds — enter 1-9",
    RejectReason.OCCUPIED: "cell occupied — try again",
}


class OutcomeKind(str, Enum):
    LINE = "line"
    TIE = "tie"
    DISCONNECT = "disconnect"
    RESIGN = "resign"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    winner: Slot | None = None  # None при ничьей

    @property
    def text(self) -> str:
        if self.winner is None:
            return "is tied"
        winner = self.winner.value
        if self.kind is OutcomeKind.DISCONNECT:
            return f"won by {winner} player since {self.winner.other.value} player disconnected"
        if self.kind is OutcomeKind.RESIGN:
            return f"won by {winner} player due to resignation"
        return f"won by {winner} player"


@dataclass
class Envelope:
    endpoint_id: str
    payload: dict[str, Any]


@dataclass
class PlayerSlot:
    slot: Slot
    endpoint_id: str

    @property
    def mark(self) -> str:
        return self.slot.mark


@dataclass
class MoveResult:
    accepted: bool
    reason: RejectReason | None = None
    envelopes: list[Envelope] = field(default_factory=list)


def new_board() -> list[str]:
    return [EMPTY] * BOARD_SIZE


def find_winner(board: list[str]) -> Slot | None:
    """
    Сумма весов меток по каждой линии: +3 значит победа первого, -3 победа второго.
    Линии проверяются по порядку (строки, столбцы, диагонали), побеждает первая найденная.
    """
    for line in LINES:
        total = sum(MARK_SCORES[board[i]] for i in line["cells"])
        if total == 3:
            return Slot.FIRST
        if total == -3:
            return Slot.SECOND
    return None


def detect_outcome(board: list[str]) -> Outcome | None:
    """Итог партии по доске или None, если игра продолжается."""
    winner = find_winner(board)
    if winner is not None:
        return Outcome(OutcomeKind.LINE, winner)
    if EMPTY not in board:
        return Outcome(OutcomeKind.TIE)
    return None


def parse_position(raw: Any) -> int | None:
    """Номер клетки из ввода игрока (строка или целое JSON). None если не число."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if not _POSITION_RE.fullmatch(text):
            return None
        return int(text)
    return None


def game_start_payload(slot: Slot) -> dict:
    return {"type": "game_start", "ordinal": slot.value, "mark": slot.mark}


def turn_payload(prompt: str | None = None) -> dict:
    return {"type": "turn", "prompt": prompt}


def board_payload(board: list[str]) -> dict:
    return {"type": "board_update", "board": list(board)}


def game_over_payload(outcome: Outcome) -> dict:
    return {
        "type": "game_over",
        "outcome": outcome.text,
        "winner": outcome.winner.value if outcome.winner else None,
        "reason": outcome.kind.value,
    }


def error_payload(reason: str) -> dict:
    return {"type": "error", "reason": reason}


def reject_payload(reason: str) -> dict:
    return {"type": "reject", "reason": reason}


@dataclass
class GameSession:
    first: PlayerSlot
    second: PlayerSlot
    board: list[str] = field(default_factory=new_board)
    turn: Slot = Slot.FIRST
    state: SessionState = SessionState.AWAITING_SECOND_PLAYER
    outcome: Outcome | None = None

    @classmethod
    def create(cls, first_endpoint_id: str, second_endpoint_id: str) -> "GameSession":
        return cls(
            first=PlayerSlot(Slot.FIRST, first_endpoint_id),
            second=PlayerSlot(Slot.SECOND, second_endpoint_id),
        )

    @property
    def is_over(self) -> bool:
        return self.state is SessionState.TERMINATED

    def player(self, slot: Slot) -> PlayerSlot:
        return self.first if slot is Slot.FIRST else self.second

    def slot_of(self, endpoint_id: str) -> Slot | None:
        for p in (self.first, self.second):
            if p.endpoint_id == endpoint_id:
                return p.slot
        return None

    def _to(self, slot: Slot, payload: dict) -> Envelope:
        return Envelope(self.player(slot).endpoint_id, payload)

    def _to_all(self, payload: dict) -> list[Envelope]:
        return [self._to(Slot.FIRST, payload), self._to(Slot.SECOND, payload)]

    def start(self) -> list[Envelope]:
        """Очистить доску, отдать ход первому и сообщить обоим их порядковый номер."""
        if self.state is not SessionState.AWAITING_SECOND_PLAYER:
            return []
        self.board = new_board()
        self.turn = Slot.FIRST
        self.state = SessionState.IN_PROGRESS
        return [
            self._to(Slot.FIRST, game_start_payload(Slot.FIRST)),
            self._to(Slot.SECOND, game_start_payload(Slot.SECOND)),
            self._to(Slot.FIRST, turn_payload()),
        ]

    def submit_move(self, slot: Slot, raw: Any) -> MoveResult:
        """
        Проверить и применить ход. Отклонённый ход не меняет ни доску, ни право хода.
        Чужой ход получает error, остальные ошибки: повторную выдачу хода с подсказкой.
        """
        if self.state is not SessionState.IN_PROGRESS:
            return MoveResult(accepted=False, reason=RejectReason.NOT_IN_PROGRESS)
        if slot is not self.turn:
            return self._reject(slot, RejectReason.NOT_YOUR_TURN)
        position = parse_position(raw)
        if position is None:
            return self._reject(slot, RejectReason.UNPARSEABLE)
        index = position - 1
        if not 0 <= index < BOARD_SIZE:
            return self._reject(slot, RejectReason.OUT_OF_BOUNDS)
        if self.board[index] != EMPTY:
            return self._reject(slot, RejectReason.OCCUPIED)

        self.board[index] = slot.mark
        envelopes = self._to_all(board_payload(self.board))
        outcome = detect_outcome(self.board)
        if outcome is not None:
            envelopes.extend(self._terminate(outcome))
        else:
            self.turn = slot.other
            envelopes.append(self._to(self.turn, turn_payload()))
        return MoveResult(accepted=True, envelopes=envelopes)

    def _reject(self, slot: Slot, reason: RejectReason) -> MoveResult:
        prompt = RETRY_PROMPTS[reason]
        if reason is RejectReason.NOT_YOUR_TURN:
            payload = error_payload(prompt)
        else:
            payload = turn_payload(prompt)
        logger.debug("%s player move rejected: %s", slot.value, reason.value)
        return MoveResult(accepted=False, reason=reason, envelopes=[self._to(slot, payload)])

    def resign(self, slot: Slot) -> list[Envelope]:
        return self._forfeit(slot, OutcomeKind.RESIGN)

    def abandon(self, slot: Slot) -> list[Envelope]:
        """Игрок отключился: победа присуждается сопернику."""
        return self._forfeit(slot, OutcomeKind.DISCONNECT)

    def input_failed(self, slot: Slot, error: Any) -> list[Envelope]:
        """Сбой канала ввода у игрока считается отключением."""
        logger.error("%s player had an error with input (%s). assuming disconnection.", slot.value, error)
        return self.abandon(slot)

    def _forfeit(self, slot: Slot, kind: OutcomeKind) -> list[Envelope]:
        if self.state is not SessionState.IN_PROGRESS:
            return []
        return self._terminate(Outcome(kind, slot.other))

    def _terminate(self, outcome: Outcome) -> list[Envelope]:
        self.outcome = outcome
        self.state = SessionState.TERMINATED
        logger.info("Game %s.", outcome.text)
        return self._to_all(game_over_payload(outcome))
