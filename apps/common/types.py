"""
Result types for the Tablesail promotions platform

Expected outcomes (an ineligible code, a lost redemption race) travel back
as values instead of exceptions:

    result = RedemptionRecorder.record(promotion_id, customer_id, order_id, amount)
    if result.is_err():
        return result.error  # ReasonCode.RACE_LOST
    redemption = result.unwrap()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar

T = TypeVar("T")  # Success value
E = TypeVar("E")  # Failure reason

# ===============================================================================
# RESULT TYPES
# ===============================================================================


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying its value"""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Expected failure carrying its reason"""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        """Only call after checking is_ok(); a failure here is a programming error."""
        raise ValueError(f"Called unwrap on Err: {self.error}")


Result = Ok[T] | Err[E]
