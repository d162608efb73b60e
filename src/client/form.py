"""
Application form state and form-level validation

The form keeps, per field, the current value and at most one inline error
annotation. Validation on blur and on submit share the same display path.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Iterable, Optional

from ..services.field_validation import FieldKind, FieldResult, ValidationContext, validate

ERROR_CLASS = "field-error"
ERROR_BORDER_COLOR = "#c0392b"


@dataclass
class FormField:
    """
    A single input on the application form

    Attributes:
        name: Input name, also the key in the submitted record
        kind: Semantic kind used to pick the validation rule
        required: Whether the input is marked required
        value: Current raw value
        error: Inline error annotation, None when the field is clean
    """

    name: str
    kind: FieldKind = FieldKind.TEXT
    required: bool = False
    value: str = ""
    error: Optional[str] = None

    @property
    def flagged(self) -> bool:
        return self.error is not None

    @property
    def border_color(self) -> str:
        return ERROR_BORDER_COLOR if self.flagged else ""

    @property
    def validated(self) -> bool:
        """Required-or-typed fields take part in form validation"""
        return self.required or self.kind != FieldKind.TEXT

    def render_error(self) -> str:
        """Markup for the sibling error annotation, empty when clean"""
        if not self.flagged:
            return ""
        return f'<span class="{ERROR_CLASS}">{self.error}</span>'


class FormView(str, Enum):
    INPUT = "input"
    CONFIRMATION = "confirmation"


# (name, kind, required) in page order
APPLICATION_FIELDS: tuple[tuple[str, FieldKind, bool], ...] = (
    ("firstName", FieldKind.TEXT, True),
    ("lastName", FieldKind.TEXT, True),
    ("email", FieldKind.EMAIL, True),
    ("phone", FieldKind.PHONE, True),
    ("dob", FieldKind.DATE_OF_BIRTH, True),
    ("gender", FieldKind.TEXT, True),
    ("idNumber", FieldKind.TEXT, True),
    ("address", FieldKind.TEXT, True),
    ("city", FieldKind.TEXT, True),
    ("county", FieldKind.TEXT, True),
    ("postalCode", FieldKind.TEXT, False),
    ("emergencyName", FieldKind.TEXT, True),
    ("emergencyPhone", FieldKind.PHONE, True),
    ("relationship", FieldKind.TEXT, True),
    ("lastSchool", FieldKind.TEXT, True),
    ("graduationYear", FieldKind.NUMBER, True),
    ("qualification", FieldKind.TEXT, True),
    ("certificates", FieldKind.TEXT, False),
    ("programme", FieldKind.TEXT, True),
    ("programmeLevel", FieldKind.TEXT, True),
    ("startDate", FieldKind.START_DATE, True),
    ("disabilityType", FieldKind.TEXT, True),
    ("supportNeeds", FieldKind.TEXT, False),
    ("signLanguage", FieldKind.TEXT, True),
    # Employment is only enforced server-side
    ("currentEmployment", FieldKind.TEXT, False),
    ("jobTitle", FieldKind.TEXT, False),
    ("workExperience", FieldKind.NUMBER, False),
    ("motivation", FieldKind.TEXT, True),
    ("goals", FieldKind.TEXT, True),
    ("referral", FieldKind.TEXT, False),
)


class ApplicationForm:
    """Client-side state of the multi-section application form"""

    def __init__(self, fields: Iterable[FormField]):
        self.fields: dict[str, FormField] = {f.name: f for f in fields}
        self.view = FormView.INPUT
        self.reference_number: Optional[str] = None
        self.notice: Optional[str] = None
        self.focus: Optional[str] = None
        self.scroll_top: Optional[int] = None

    @classmethod
    def standard(cls) -> "ApplicationForm":
        return cls(FormField(name, kind, required) for name, kind, required in APPLICATION_FIELDS)

    def __getitem__(self, name: str) -> FormField:
        return self.fields[name]

    def set(self, name: str, value: Optional[str]) -> None:
        self.fields[name].value = "" if value is None else str(value)

    def fill(self, values: dict[str, Optional[str]]) -> None:
        for name, value in values.items():
            if name in self.fields:
                self.set(name, value)

    def values(self) -> dict[str, str]:
        """Flat record of every named field; untouched fields are empty strings"""
        return {name: f.value for name, f in self.fields.items()}

    def errors(self) -> dict[str, str]:
        return {name: f.error for name, f in self.fields.items() if f.error is not None}

    def show_confirmation(self, reference_number: str) -> None:
        """Swap the input view for the confirmation view, focused at its top"""
        self.reference_number = reference_number
        self.notice = None
        self.view = FormView.CONFIRMATION
        self.focus = "confirmation"
        self.scroll_top = 0

    def show_notice(self, message: str) -> None:
        """Blocking submission-level notice; field values are left untouched"""
        self.notice = message

    def dismiss_notice(self) -> None:
        self.notice = None


class FormValidator:
    """Runs field rules over a form and keeps inline annotations in sync"""

    def __init__(self, today: Callable[[], date] = date.today):
        self.today = today

    def check(self, form_field: FormField) -> FieldResult:
        context = ValidationContext(required=form_field.required, today=self.today())
        return validate(form_field.kind, form_field.value, context)

    def validate_field(self, form_field: FormField) -> bool:
        result = self.check(form_field)
        display_field_error(form_field, result)
        return result.valid

    def on_blur(self, form: ApplicationForm, name: str) -> bool:
        """Real-time validation when a field loses focus"""
        return self.validate_field(form[name])

    def validate_form(self, form: ApplicationForm) -> bool:
        """
        Validate every required-or-typed field

        Every field is checked even after a failure so all errors show at once.
        """
        is_valid = True
        for form_field in form.fields.values():
            if form_field.validated and not self.validate_field(form_field):
                is_valid = False
        return is_valid


def display_field_error(form_field: FormField, result: FieldResult) -> None:
    """Replace any existing annotation with the result's message, or clear it"""
    form_field.error = None if result.valid else result.message
