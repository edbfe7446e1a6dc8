"""
Outcome codes for promotion evaluation and recording.

Everything here except PromotionUpstreamError is an expected, user-facing
outcome and travels inside an Err(...) result rather than being raised.
"""

from __future__ import annotations

from enum import Enum


class ReasonCode(str, Enum):
    """Machine-readable reason a promotion request did not succeed."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"
    NOT_YET_VALID = "NOT_YET_VALID"
    OUTSIDE_SCHEDULE = "OUTSIDE_SCHEDULE"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    BELOW_MINIMUM_ITEMS = "BELOW_MINIMUM_ITEMS"
    GLOBAL_LIMIT_REACHED = "GLOBAL_LIMIT_REACHED"
    CUSTOMER_LIMIT_REACHED = "CUSTOMER_LIMIT_REACHED"
    SEGMENT_MISMATCH = "SEGMENT_MISMATCH"
    CODE_MISMATCH = "CODE_MISMATCH"
    NOT_FOUND = "NOT_FOUND"
    RACE_LOST = "RACE_LOST"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"

    def __str__(self) -> str:
        return self.value

    @property
    def message(self) -> str:
        return REASON_MESSAGES[self]


# One specific message per outcome; never collapse these into "invalid code"
REASON_MESSAGES: dict[ReasonCode, str] = {
    ReasonCode.VALIDATION_ERROR: "The request is missing information or contains invalid amounts.",
    ReasonCode.INACTIVE: "This promotion has been turned off by the restaurant.",
    ReasonCode.EXPIRED: "This promotion has expired.",
    ReasonCode.NOT_YET_VALID: "This promotion has not started yet.",
    ReasonCode.OUTSIDE_SCHEDULE: "This promotion is only available on certain days or hours.",
    ReasonCode.BELOW_MINIMUM: "Your order does not meet the minimum amount for this promotion.",
    ReasonCode.BELOW_MINIMUM_ITEMS: "Add more items to your order to use this promotion.",
    ReasonCode.GLOBAL_LIMIT_REACHED: "This promotion has reached its redemption limit.",
    ReasonCode.CUSTOMER_LIMIT_REACHED: "You have already used this promotion the maximum number of times.",
    ReasonCode.SEGMENT_MISMATCH: "This promotion is reserved for a different group of customers.",
    ReasonCode.CODE_MISMATCH: "The code entered does not match this promotion.",
    ReasonCode.NOT_FOUND: "We couldn't find a promotion with that code.",
    ReasonCode.RACE_LOST: "This promotion is no longer available. Your total has been updated without it.",
    ReasonCode.UPSTREAM_ERROR: "Promotions are temporarily unavailable. Please try again shortly.",
}


class PromotionUpstreamError(Exception):
    """The promotion datastore failed or timed out after the allowed retry."""

    code = ReasonCode.UPSTREAM_ERROR
