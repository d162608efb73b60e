"""
Field-level validation rules shared by the form client and the submission service

Rules are looked up in a table keyed by field kind. A required check runs
first and short-circuits; at most one rule fires per call.
"""
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..core.config import settings

REQUIRED_MESSAGE = "This field is required"
EMAIL_MESSAGE = "Please enter a valid email address"
PHONE_MESSAGE = "Please enter a valid phone number"
DOB_FUTURE_MESSAGE = "Date of birth cannot be in the future"
DOB_MINIMUM_AGE_MESSAGE = "You must be at least {age} years old to apply"
START_DATE_PAST_MESSAGE = "Start date cannot be in the past"
NUMBER_MESSAGE = "Please enter a valid number"
DATE_MESSAGE = "Please enter a valid date"

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
# Unicode whitespace is allowed between groups, only ASCII digits count
PHONE_PATTERN = re.compile(r"[0-9\s\-+()]+")
NON_DIGIT_PATTERN = re.compile(r"[^0-9]")
NUMBER_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)

MIN_PHONE_DIGITS = 9


class FieldKind(str, Enum):
    """Semantic type of a form field"""

    TEXT = "text"
    REQUIRED = "required"
    EMAIL = "email"
    PHONE = "phone"
    DATE_OF_BIRTH = "date:dob"
    START_DATE = "date:startDate"
    NUMBER = "number"


@dataclass(frozen=True)
class ValidationContext:
    """
    Per-call validation context

    Attributes:
        required: Whether an empty value is an error
        today: Reference date for date rules; defaults to the date at call time
        minimum_age: Minimum whole-year age for date of birth
    """

    required: bool = False
    today: Optional[date] = None
    minimum_age: int = settings.MINIMUM_APPLICANT_AGE

    def resolve_today(self) -> date:
        return self.today or date.today()


@dataclass(frozen=True)
class FieldResult:
    valid: bool
    message: Optional[str] = None


VALID = FieldResult(valid=True)


def calculate_age(dob: date, today: date) -> int:
    """Whole years between dob and today; a birthday not yet reached this year does not count"""
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def parse_date(value: str) -> Optional[date]:
    """Parse an ISO (YYYY-MM-DD) date as submitted by a date input"""
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def is_valid_email(value: str) -> bool:
    return EMAIL_PATTERN.fullmatch(value) is not None


def is_valid_phone(value: str) -> bool:
    if PHONE_PATTERN.fullmatch(value) is None:
        return False
    return len(NON_DIGIT_PATTERN.sub("", value)) >= MIN_PHONE_DIGITS


def is_numeric(value: str) -> bool:
    return NUMBER_PATTERN.fullmatch(value.strip()) is not None


def _check_email(value: str, context: ValidationContext) -> Optional[str]:
    return None if is_valid_email(value) else EMAIL_MESSAGE


def _check_phone(value: str, context: ValidationContext) -> Optional[str]:
    return None if is_valid_phone(value) else PHONE_MESSAGE


def _check_date_of_birth(value: str, context: ValidationContext) -> Optional[str]:
    dob = parse_date(value)
    if dob is None:
        return DATE_MESSAGE
    today = context.resolve_today()
    if dob > today:
        return DOB_FUTURE_MESSAGE
    if calculate_age(dob, today) < context.minimum_age:
        return DOB_MINIMUM_AGE_MESSAGE.format(age=context.minimum_age)
    return None


def _check_start_date(value: str, context: ValidationContext) -> Optional[str]:
    start = parse_date(value)
    if start is None:
        return DATE_MESSAGE
    if start < context.resolve_today():
        return START_DATE_PAST_MESSAGE
    return None


def _check_number(value: str, context: ValidationContext) -> Optional[str]:
    return None if is_numeric(value) else NUMBER_MESSAGE


# Adding a field kind is a table edit
RULES: Dict[FieldKind, Callable[[str, ValidationContext], Optional[str]]] = {
    FieldKind.EMAIL: _check_email,
    FieldKind.PHONE: _check_phone,
    FieldKind.DATE_OF_BIRTH: _check_date_of_birth,
    FieldKind.START_DATE: _check_start_date,
    FieldKind.NUMBER: _check_number,
}


def validate(kind: FieldKind, value: Any, context: Optional[ValidationContext] = None) -> FieldResult:
    """
    Validate a single field value

    Args:
        kind: Semantic field kind
        value: Raw value (None is treated as empty)
        context: Required flag and reference date

    Returns:
        FieldResult with valid flag and message when invalid
    """
    context = context or ValidationContext()
    text = "" if value is None else str(value)

    if (context.required or kind == FieldKind.REQUIRED) and not text.strip():
        return FieldResult(valid=False, message=REQUIRED_MESSAGE)

    rule = RULES.get(kind)
    if rule is None or not text:
        return VALID

    message = rule(text, context)
    if message is None:
        return VALID
    return FieldResult(valid=False, message=message)
