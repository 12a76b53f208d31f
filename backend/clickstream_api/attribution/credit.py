"""
Attribution Credit Strategies
=============================

How one conversion's credit is split across the touch points that led to it.

WHY THIS FILE EXISTS
--------------------
The three SQL builders share the same windowing, join and aggregation
skeleton and differ only in the credit rule. Each rule lives here once, in
two forms that must agree:

    credit(rank, total)              -> float, for reasoning and tests
    sql_expression(rank, total)      -> Redshift CASE expression

`rank` is the 1-based position of a touch in the conversion's ordered touch
sequence (earliest first); `total` is the number of qualifying touches.

MODELS
------
    SinglePointCredit(FIRST)  1.0 to rank 1
    SinglePointCredit(LAST)   1.0 to rank == total
    LinearCredit              1 / total to every touch
    PositionCredit            1 touch: 1.0
                              2 touches: 0.5 / 0.5
                              3+ touches: 0.4 first, 0.4 last,
                                          0.2 shared by the middle touches

For every total >= 1 the credits of one conversion sum to 1.0.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TouchDirection(str, Enum):
    FIRST = "FIRST"
    LAST = "LAST"


POSITION_ENDPOINT_WEIGHT = 0.4
POSITION_MIDDLE_WEIGHT = 0.2


class CreditStrategy:
    """Base class for credit-assignment rules."""

    name: str = "credit"

    def credit(self, rank: int, total: int) -> float:
        raise NotImplementedError

    def sql_expression(self, rank_column: str, total_column: str) -> str:
        raise NotImplementedError

    def credits(self, total: int) -> list:
        """Credits for ranks 1..total, in order."""
        return [self.credit(rank, total) for rank in range(1, total + 1)]


@dataclass(frozen=True)
class SinglePointCredit(CreditStrategy):
    """All credit to the first or to the last touch."""

    direction: TouchDirection = TouchDirection.LAST

    @property
    def name(self) -> str:
        return "first_touch" if self.direction == TouchDirection.FIRST else "last_touch"

    def credit(self, rank: int, total: int) -> float:
        _check_rank(rank, total)
        target = 1 if self.direction == TouchDirection.FIRST else total
        return 1.0 if rank == target else 0.0

    def sql_expression(self, rank_column: str, total_column: str) -> str:
        target = "1" if self.direction == TouchDirection.FIRST else total_column
        return f"CASE WHEN {rank_column} = {target} THEN 1.0 ELSE 0.0 END"


@dataclass(frozen=True)
class LinearCredit(CreditStrategy):
    """Equal credit to every touch."""

    name = "linear"

    def credit(self, rank: int, total: int) -> float:
        _check_rank(rank, total)
        return 1.0 / total

    def sql_expression(self, rank_column: str, total_column: str) -> str:
        return f"1.0 / CAST({total_column} AS DOUBLE PRECISION)"


@dataclass(frozen=True)
class PositionCredit(CreditStrategy):
    """40/20/40 split with the single and two-touch special cases."""

    name = "position"

    def credit(self, rank: int, total: int) -> float:
        _check_rank(rank, total)
        if total == 1:
            return 1.0
        if total == 2:
            return 0.5
        if rank == 1 or rank == total:
            return POSITION_ENDPOINT_WEIGHT
        return POSITION_MIDDLE_WEIGHT / (total - 2)

    def sql_expression(self, rank_column: str, total_column: str) -> str:
        return (
            "CASE"
            f" WHEN {total_column} = 1 THEN 1.0"
            f" WHEN {total_column} = 2 THEN 0.5"
            f" WHEN {rank_column} = 1 OR {rank_column} = {total_column} THEN {POSITION_ENDPOINT_WEIGHT}"
            f" ELSE {POSITION_MIDDLE_WEIGHT} / CAST({total_column} - 2 AS DOUBLE PRECISION)"
            " END"
        )


def _check_rank(rank: int, total: int) -> None:
    if total < 1 or rank < 1 or rank > total:
        raise ValueError(f"rank {rank} is outside 1..{total}")

