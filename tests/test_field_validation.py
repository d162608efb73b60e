"""
Test suite for field-level validation rules

Tests cover:
- Required check and its short-circuit
- Email and phone formats
- Date of birth and start date boundaries
- Numeric fields
"""
from datetime import date

import pytest

from src.services.field_validation import (
    DATE_MESSAGE,
    DOB_FUTURE_MESSAGE,
    EMAIL_MESSAGE,
    NUMBER_MESSAGE,
    PHONE_MESSAGE,
    REQUIRED_MESSAGE,
    START_DATE_PAST_MESSAGE,
    FieldKind,
    ValidationContext,
    calculate_age,
    validate,
)


@pytest.fixture
def context(today: date) -> ValidationContext:
    return ValidationContext(required=True, today=today)


class TestRequired:
    """Required flag behaviour"""

    @pytest.mark.parametrize("value", ["", "   ", None, "\t\n"])
    def test_blank_required_value_fails(self, value, context: ValidationContext):
        result = validate(FieldKind.TEXT, value, context)

        assert not result.valid
        assert result.message == REQUIRED_MESSAGE

    def test_blank_optional_typed_value_is_valid(self):
        """Type rules only fire on non-empty values"""
        assert validate(FieldKind.EMAIL, "").valid
        assert validate(FieldKind.PHONE, "").valid
        assert validate(FieldKind.NUMBER, "").valid

    def test_required_kind_without_flag(self):
        result = validate(FieldKind.REQUIRED, " ")

        assert result.message == REQUIRED_MESSAGE

    def test_required_short_circuits_type_rule(self, context: ValidationContext):
        """An empty required email reports only the required message"""
        result = validate(FieldKind.EMAIL, "", context)

        assert result.message == REQUIRED_MESSAGE

    def test_plain_text_is_always_valid_when_present(self, context: ValidationContext):
        assert validate(FieldKind.TEXT, "anything at all", context).valid


class TestEmail:
    @pytest.mark.parametrize("value", ["a@b.co", "first.last+tag@example.ac.ke", "x@y.z"])
    def test_valid_addresses(self, value):
        assert validate(FieldKind.EMAIL, value).valid

    @pytest.mark.parametrize(
        "value",
        ["not-an-email", "a@b", "a b@c.d", "@b.co", "a@.", "a@@b.co x"],
    )
    def test_invalid_addresses(self, value):
        result = validate(FieldKind.EMAIL, value)

        assert not result.valid
        assert result.message == EMAIL_MESSAGE


class TestPhone:
    @pytest.mark.parametrize("value", ["+254 712 345 678", "0722-000-111", "(020) 123 4567", "123456789"])
    def test_valid_numbers(self, value):
        assert validate(FieldKind.PHONE, value).valid

    @pytest.mark.parametrize("value", ["12345", "12345678", "0722 abc 111", "+254.712.345.678"])
    def test_invalid_numbers(self, value):
        result = validate(FieldKind.PHONE, value)

        assert not result.valid
        assert result.message == PHONE_MESSAGE

    def test_non_ascii_digits_rejected(self):
        assert not validate(FieldKind.PHONE, "٠١٢٣٤٥٦٧٨٩").valid

    def test_non_breaking_spaces_between_groups(self):
        assert validate(FieldKind.PHONE, "+254\u00a0712\u00a0345\u00a0678").valid

    def test_non_ascii_digits_do_not_count(self):
        assert not validate(FieldKind.PHONE, "0722 \u0661\u0662\u0663 \u0664\u0665\u0666").valid


class TestDateOfBirth:
    def test_exactly_minimum_age_is_valid(self, context: ValidationContext):
        assert validate(FieldKind.DATE_OF_BIRTH, "2010-10-19", context).valid

    def test_one_day_short_of_minimum_age(self, context: ValidationContext):
        result = validate(FieldKind.DATE_OF_BIRTH, "2010-10-20", context)

        assert result.message == "You must be at least 16 years old to apply"

    def test_future_date(self, context: ValidationContext):
        result = validate(FieldKind.DATE_OF_BIRTH, "2026-10-20", context)

        assert result.message == DOB_FUTURE_MESSAGE

    def test_today_fails_on_age_not_future(self, context: ValidationContext):
        result = validate(FieldKind.DATE_OF_BIRTH, "2026-10-19", context)

        assert result.message == "You must be at least 16 years old to apply"

    def test_unparseable_date(self, context: ValidationContext):
        result = validate(FieldKind.DATE_OF_BIRTH, "19/10/2000", context)

        assert result.message == DATE_MESSAGE

    def test_minimum_age_from_context(self, today: date):
        context = ValidationContext(required=True, today=today, minimum_age=18)

        result = validate(FieldKind.DATE_OF_BIRTH, "2010-10-19", context)

        assert result.message == "You must be at least 18 years old to apply"


class TestStartDate:
    def test_today_is_valid(self, context: ValidationContext):
        assert validate(FieldKind.START_DATE, "2026-10-19", context).valid

    def test_future_is_valid(self, context: ValidationContext):
        assert validate(FieldKind.START_DATE, "2027-01-10", context).valid

    def test_yesterday_is_in_the_past(self, context: ValidationContext):
        result = validate(FieldKind.START_DATE, "2026-10-18", context)

        assert result.message == START_DATE_PAST_MESSAGE


class TestNumber:
    @pytest.mark.parametrize("value", ["2024", " 3 ", "-1", "2.5", "1e3"])
    def test_numeric(self, value):
        assert validate(FieldKind.NUMBER, value).valid

    @pytest.mark.parametrize("value", ["twenty", "2019abc", "1,000"])
    def test_not_numeric(self, value):
        result = validate(FieldKind.NUMBER, value)

        assert result.message == NUMBER_MESSAGE


class TestCalculateAge:
    def test_birthday_not_yet_reached(self):
        assert calculate_age(date(2000, 12, 31), date(2026, 10, 19)) == 25

    def test_birthday_today(self):
        assert calculate_age(date(2000, 10, 19), date(2026, 10, 19)) == 26

    def test_leap_day_birthday(self):
        assert calculate_age(date(2008, 2, 29), date(2024, 2, 28)) == 15
        assert calculate_age(date(2008, 2, 29), date(2024, 2, 29)) == 16
