"""
Outcome codes for loyalty operations.
"""

from __future__ import annotations

from enum import Enum


class LoyaltyError(str, Enum):
    """Machine-readable reason a loyalty request did not succeed."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"
    REWARD_NOT_AVAILABLE = "REWARD_NOT_AVAILABLE"
    CUSTOMER_LIMIT_REACHED = "CUSTOMER_LIMIT_REACHED"
    GLOBAL_LIMIT_REACHED = "GLOBAL_LIMIT_REACHED"
    RACE_LOST = "RACE_LOST"

    def __str__(self) -> str:
        return self.value

    @property
    def message(self) -> str:
        return LOYALTY_MESSAGES[self]


LOYALTY_MESSAGES: dict[LoyaltyError, str] = {
    LoyaltyError.VALIDATION_ERROR: "The request is missing information or contains invalid amounts.",
    LoyaltyError.NOT_FOUND: "No matching loyalty program, account or reward was found.",
    LoyaltyError.INSUFFICIENT_POINTS: "You don't have enough points for this reward.",
    LoyaltyError.REWARD_NOT_AVAILABLE: "This reward is not currently available.",
    LoyaltyError.CUSTOMER_LIMIT_REACHED: "You have already redeemed this reward the maximum number of times.",
    LoyaltyError.GLOBAL_LIMIT_REACHED: "This reward has reached its redemption limit.",
    LoyaltyError.RACE_LOST: "This reward could not be redeemed because your balance or its availability just changed.",
}
