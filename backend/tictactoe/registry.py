"""
Реестр сессий (in-memory): не больше одной партии одновременно.
Раздаёт слоты подключениям, отклоняет третьего игрока и направляет события в живую партию.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from .constants import NOT_STARTED, REJECT_FULL
from .game import (
    Envelope,
    GameSession,
    MoveResult,
    SessionState,
    Slot,
    error_payload,
    reject_payload,
)

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_INTERNAL_ERROR = 1011
CLOSE_TRY_AGAIN_LATER = 1013


@dataclass
class Dispatch:
    """Что отправить и какие подключения закрыть после обработки события."""
    envelopes: list[Envelope] = field(default_factory=list)
    closing: list[str] = field(default_factory=list)
    close_code: int = CLOSE_NORMAL
    move: MoveResult | None = None


@dataclass
class SlotAssignment(Dispatch):
    slot: Slot = field(kw_only=True)


@dataclass
class Rejection(Dispatch):
    reason: str = REJECT_FULL
    close_code: int = CLOSE_TRY_AGAIN_LATER


class SessionRegistry:
    def __init__(self):
        self._first: str | None = None
        self._second: str | None = None
        self.session: GameSession | None = None

    @property
    def state(self) -> SessionState:
        if self.session is not None:
            return self.session.state
        if self._first is not None:
            return SessionState.AWAITING_SECOND_PLAYER
        return SessionState.EMPTY

    def connect(self, endpoint_id: str) -> SlotAssignment | Rejection:
        """
        Занять первый свободный слот. Второй слот запускает партию:
        обоим уходит game_start, первому выдаётся ход.
        """
        if self._first is None:
            self._first = endpoint_id
            logger.info("first player connected endpoint=%s, waiting for second", endpoint_id)
            return SlotAssignment(slot=Slot.FIRST)
        if self._second is None:
            self._second = endpoint_id
            self.session = GameSession.create(self._first, self._second)
            logger.info("second player connected endpoint=%s, game started", endpoint_id)
            return SlotAssignment(envelopes=self.session.start(), slot=Slot.SECOND)
        logger.warning("rejecting endpoint=%s: two players already connected", endpoint_id)
        return Rejection(
            envelopes=[Envelope(endpoint_id, reject_payload(REJECT_FULL))],
            closing=[endpoint_id],
        )

    def _lookup(self, endpoint_id: str) -> tuple[GameSession | None, Slot | None]:
        if self.session is None:
            return None, None
        slot = self.session.slot_of(endpoint_id)
        if slot is None:
            return None, None
        return self.session, slot

    def submit_move(self, endpoint_id: str, raw: Any) -> Dispatch:
        session, slot = self._lookup(endpoint_id)
        if session is None:
            if endpoint_id == self._first:
                return Dispatch(envelopes=[Envelope(endpoint_id, error_payload(NOT_STARTED))])
            logger.debug("move from unknown endpoint=%s ignored", endpoint_id)
            return Dispatch()
        result = session.submit_move(slot, raw)
        dispatch = self._settle(result.envelopes)
        dispatch.move = result
        return dispatch

    def resign(self, endpoint_id: str) -> Dispatch:
        session, slot = self._lookup(endpoint_id)
        if session is None:
            logger.debug("resign from endpoint=%s outside a game ignored", endpoint_id)
            return Dispatch()
        return self._settle(session.resign(slot))

    def turn_error(self, endpoint_id: str, error: Any) -> Dispatch:
        session, slot = self._lookup(endpoint_id)
        if session is None:
            logger.warning("input error from endpoint=%s outside a game: %s", endpoint_id, error)
            return Dispatch()
        return self._settle(session.input_failed(slot, error))

    def disconnect(self, endpoint_id: str) -> Dispatch:
        if self.session is None and endpoint_id == self._first:
            # Первый ушёл, не дождавшись соперника
            self._first = None
            logger.info("first player left before the game started endpoint=%s", endpoint_id)
            return Dispatch()
        session, slot = self._lookup(endpoint_id)
        if session is None:
            return Dispatch()
        return self._settle(session.abandon(slot))

    def _settle(self, envelopes: list[Envelope]) -> Dispatch:
        dispatch = Dispatch(envelopes=envelopes)
        if self.session is not None and self.session.is_over:
            dispatch.closing = self._finish()
        return dispatch

    def _finish(self) -> list[str]:
        """Единственный путь завершения: освободить оба слота и вернуться в EMPTY."""
        session = self.session
        closing = [session.first.endpoint_id, session.second.endpoint_id]
        logger.info("session finished (%s), registry reset", session.outcome.kind.value)
        self.release()
        return closing

    def release(self) -> None:
        self._first = None
        self._second = None
        self.session = None


# Глобальное состояние (in-memory)
registry = SessionRegistry()
