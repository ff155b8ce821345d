"""Константы игры: метки, линии доски и тексты сообщений."""
from typing import TypedDict

EMPTY = "."
FIRST_MARK = "x"
SECOND_MARK = "o"

BOARD_SIZE = 9

# Вес метки при подсчёте суммы линии
MARK_SCORES: dict[str, int] = {FIRST_MARK: 1, SECOND_MARK: -1, EMPTY: 0}


class Line(TypedDict):
    kind: str
    cells: tuple[int, int, int]


# Порядок проверки: строки, столбцы, диагонали
LINES: list[Line] = [
    *({"kind": "row", "cells": (r * 3, r * 3 + 1, r * 3 + 2)} for r in range(3)),
    *({"kind": "column", "cells": (c, c + 3, c + 6)} for c in range(3)),
    {"kind": "diagonal", "cells": (0, 4, 8)},
    {"kind": "diagonal", "cells": (2, 4, 6)},
]

REJECT_FULL = "two players already connected"
NOT_STARTED = "the game has not started yet. wait for the second player."
