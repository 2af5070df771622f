"""
Argument validation

Pure checks that run before any cache lookup or network call, so a caller
mistake never costs a round trip. Each function returns the normalised value
or raises ValidationError.
"""

from datetime import datetime
from numbers import Real
from typing import Any, Optional, Union

from laikatest.core.errors import ValidationError

OUTCOMES = ("success", "failure")
USER_FEEDBACK = ("positive", "negative", "neutral")

SCORE_MIN = 0
SCORE_MAX = 10
LIMIT_MIN = 1
LIMIT_MAX = 500

DateInput = Union[str, datetime]


def require_id(value: Optional[str], name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{name} is required")
    return value


def optional_str(value: Any, name: str) -> Optional[str]:
    """None and "" mean absent; anything else must be a string"""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value


def validate_outcome(outcome: Any, name: str = "outcome") -> str:
    # str(Enum) members compare equal to their value
    if outcome not in OUTCOMES:
        raise ValidationError(f'{name} must be "success" or "failure"')
    return str(getattr(outcome, "value", outcome))


def validate_feedback(feedback: Any, name: str = "user_feedback") -> str:
    if feedback not in USER_FEEDBACK:
        raise ValidationError(f'{name} must be "positive", "negative", or "neutral"')
    return str(getattr(feedback, "value", feedback))


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate_score(score: Any, name: str = "score") -> Union[int, float]:
    if not _is_number(score) or score != score or not SCORE_MIN <= score <= SCORE_MAX:
        raise ValidationError(f"{name} must be a number between {SCORE_MIN} and {SCORE_MAX}")
    return score


def validate_page(page: Any) -> int:
    if not isinstance(page, int) or isinstance(page, bool) or page < 1:
        raise ValidationError("page must be a positive integer")
    return page


def validate_limit(limit: Any) -> int:
    if (
        not isinstance(limit, int)
        or isinstance(limit, bool)
        or not LIMIT_MIN <= limit <= LIMIT_MAX
    ):
        raise ValidationError(f"limit must be an integer between {LIMIT_MIN} and {LIMIT_MAX}")
    return limit


def parse_iso_datetime(value: Any, name: str) -> datetime:
    """
    Parse an ISO 8601 timestamp that carries both a time and a zone

    "2024-01-01T00:00:00Z" and "2024-01-01T08:00:00+08:00" pass,
    "2024-01-01" and "2024-01-01T00:00:00" do not.
    """
    message = f"{name} must be in ISO 8601 format with time and timezone (YYYY-MM-DDTHH:mm:ssZ)"

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and "T" in value:
        text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(message) from e
    else:
        raise ValidationError(message)

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ValidationError(message)
    return parsed


def validate_date_range(
    start_date: Optional[DateInput],
    end_date: Optional[DateInput],
) -> tuple[Optional[datetime], Optional[datetime]]:
    start = parse_iso_datetime(start_date, "start_date") if start_date is not None else None
    end = parse_iso_datetime(end_date, "end_date") if end_date is not None else None

    if start is not None and end is not None and start >= end:
        raise ValidationError("start_date must be before end_date")
    return start, end
