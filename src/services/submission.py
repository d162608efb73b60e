"""
Server-side application submission pipeline

Each step is a hard gate; a failing step short-circuits with its response:

1. method check (POST only)
2. payload parsing (JSON, falling back to form-encoded)
3. required-field sweep, all missing fields reported together
4. email / phone / date re-validation, first failure reported
5. sanitization of every free-text field
6. reference allocation and record assembly into the documented blocks
7. persistence, retried with a fresh reference on collision (any other
   storage failure is fatal for the request)
8. confirmation notification (best-effort, never fails the request)
"""
import json
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl

from ..core.config import settings
from ..core.errors import (
    MethodNotAllowed,
    PersistenceFailed,
    ReferenceAllocationError,
    ReferenceCollisionError,
    StorageError,
    SubmissionError,
    ValidationFailed,
    submission_body,
)
from ..schemas.applications import (
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
    AdditionalInfo,
    AddressInfo,
    ApplicationRecord,
    DisabilityInfo,
    Education,
    EmergencyContact,
    Employment,
    PersonalInfo,
    ProgrammeInfo,
)
from .field_validation import FieldKind, ValidationContext, is_valid_email, parse_date, validate
from .notifications import ConfirmationNotification, NotificationDispatcher
from .reference import ReferenceGenerator, reference_generator, utc_now
from .sanitization import coerce_int, sanitize
from .storage import StorageSink

logger = logging.getLogger(__name__)

WRITE_METHOD = "POST"
SUCCESS_MESSAGE = "Application submitted successfully"
VALIDATION_FAILED_MESSAGE = "Validation failed"
PERSISTENCE_FAILED_MESSAGE = "An error occurred while processing your application"
ALLOCATION_FAILED_MESSAGE = "Could not allocate a reference number for your application"

DATE_FIELDS = ("dob", "startDate")
INTEGER_FIELDS = ("graduationYear", "workExperience")


@dataclass(frozen=True)
class SubmissionOutcome:
    status_code: int
    body: dict[str, Any]


class MonotonicClock:
    """UTC clock that never returns a time earlier than one it already returned"""

    def __init__(self, source: Callable[[], datetime] = utc_now):
        self._source = source
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            now = self._source()
            if self._last is not None and now < self._last:
                now = self._last
            self._last = now
            return now


submission_clock = MonotonicClock()


def parse_payload(body: bytes | str) -> dict[str, Any]:
    """
    Decode a submission body

    JSON objects are used as-is; anything else (invalid JSON, an empty or
    non-object document) is re-read as application/x-www-form-urlencoded.
    """
    try:
        data = json.loads(body) if body else None
    except ValueError:
        data = None

    if isinstance(data, dict) and data:
        return data

    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    return dict(parse_qsl(text or "", keep_blank_values=True))


def is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def missing_field_errors(data: dict[str, Any]) -> list[str]:
    """One message per required field that is absent or blank"""
    return [f"Field '{name}' is required" for name in REQUIRED_FIELDS if is_blank(data.get(name))]


class SubmissionService:
    """Validates, stores and acknowledges enrollment applications"""

    def __init__(
        self,
        storage: StorageSink,
        dispatcher: NotificationDispatcher,
        generator: ReferenceGenerator = reference_generator,
        clock: Callable[[], datetime] = submission_clock,
        today: Callable[[], date] = date.today,
        max_attempts: int = settings.MAX_REFERENCE_ATTEMPTS,
        expose_error_details: bool = settings.EXPOSE_ERROR_DETAILS,
    ):
        self.storage = storage
        self.dispatcher = dispatcher
        self.generator = generator
        self.clock = clock
        self.today = today
        self.max_attempts = max(1, max_attempts)
        self.expose_error_details = expose_error_details

    def handle_submission(self, method: str, body: bytes | str) -> SubmissionOutcome:
        """
        Run the full pipeline for one request

        Returns:
            SubmissionOutcome with HTTP status and response envelope
        """
        try:
            if method.upper() != WRITE_METHOD:
                raise MethodNotAllowed("Method not allowed")

            data = parse_payload(body)
            self.check_required(data)
            self.revalidate(data)

            submitted_at = self.clock()
            record = self.persist(sanitize_fields(data), data, submitted_at)
        except SubmissionError as e:
            return self._failure(e)

        self.notify(record)

        logger.info(
            f"Application accepted: {record['referenceNumber']} "
            f"(programme={record['programmeInfo']['programme']})"
        )
        return SubmissionOutcome(
            status_code=200,
            body=submission_body(True, SUCCESS_MESSAGE, reference_number=record["referenceNumber"]),
        )

    def check_required(self, data: dict[str, Any]) -> None:
        errors = missing_field_errors(data)
        if errors:
            raise ValidationFailed(VALIDATION_FAILED_MESSAGE, errors=errors)

    def revalidate(self, data: dict[str, Any]) -> None:
        """Re-check formats with the same rules the form uses; first failure wins"""
        if not is_valid_email(str(data["email"])):
            raise ValidationFailed("Invalid email address")

        if not validate(FieldKind.PHONE, data["phone"]).valid:
            raise ValidationFailed("Invalid phone number")

        if not validate(FieldKind.PHONE, data["emergencyPhone"]).valid:
            raise ValidationFailed("Invalid emergency contact phone number")

        context = ValidationContext(required=True, today=self.today())
        for name, kind in (("dob", FieldKind.DATE_OF_BIRTH), ("startDate", FieldKind.START_DATE)):
            result = validate(kind, data[name], context)
            if not result.valid:
                raise ValidationFailed(result.message)

    def persist(
        self,
        fields: dict[str, str],
        data: dict[str, Any],
        submitted_at: datetime,
    ) -> dict[str, Any]:
        """
        Allocate a reference number and store the record

        A collision means another record already holds the reference; a fresh
        one is generated, up to max_attempts times.
        """
        for attempt in range(1, self.max_attempts + 1):
            reference_number = self.generator.generate()
            record = assemble_record(fields, data, reference_number, submitted_at).to_storage()
            try:
                self.storage.save(record)
                return record
            except ReferenceCollisionError:
                logger.warning(
                    f"Reference collision on {reference_number} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
            except StorageError as e:
                logger.error(f"Failed to persist application {reference_number}: {e}")
                raise PersistenceFailed(PERSISTENCE_FAILED_MESSAGE, detail=str(e)) from e

        logger.error(f"Reference allocation exhausted after {self.max_attempts} attempts")
        raise ReferenceAllocationError(
            ALLOCATION_FAILED_MESSAGE,
            detail=f"{self.max_attempts} consecutive reference collisions",
        )

    def notify(self, record: dict[str, Any]) -> None:
        try:
            self.dispatcher.dispatch(ConfirmationNotification.from_record(record))
        except Exception:
            logger.exception(f"Could not queue confirmation for {record['referenceNumber']}")

    def _failure(self, error: SubmissionError) -> SubmissionOutcome:
        if error.status_code >= 500:
            logger.error(f"Submission failed: {error.message}")
        else:
            logger.info(f"Submission rejected ({error.status_code}): {error.message}")

        detail = error.detail if self.expose_error_details else None
        return SubmissionOutcome(
            status_code=error.status_code,
            body=submission_body(False, error.message, errors=error.errors, detail=detail),
        )


def sanitize_fields(data: dict[str, Any]) -> dict[str, str]:
    """Sanitize every free-text field; dates and integers are normalized separately"""
    return {
        name: sanitize(data.get(name))
        for name in REQUIRED_FIELDS + OPTIONAL_FIELDS
        if name not in DATE_FIELDS + INTEGER_FIELDS
    }


def _iso_date(value: Any) -> str:
    parsed = parse_date(str(value))
    return parsed.isoformat() if parsed else sanitize(value)


def assemble_record(
    fields: dict[str, str],
    data: dict[str, Any],
    reference_number: str,
    submitted_at: datetime,
) -> ApplicationRecord:
    """
    Group the flat sanitized fields into the stored record blocks

    graduationYear and workExperience go through coerce_int, so a
    non-numeric value is stored as 0.
    """
    return ApplicationRecord(
        reference_number=reference_number,
        submitted_at=submitted_at.isoformat(),
        personal_info=PersonalInfo(
            first_name=fields["firstName"],
            last_name=fields["lastName"],
            email=fields["email"],
            phone=fields["phone"],
            date_of_birth=_iso_date(data.get("dob")),
            gender=fields["gender"],
            id_number=fields["idNumber"],
        ),
        address_info=AddressInfo(
            address=fields["address"],
            city=fields["city"],
            county=fields["county"],
            postal_code=fields["postalCode"],
        ),
        emergency_contact=EmergencyContact(
            name=fields["emergencyName"],
            phone=fields["emergencyPhone"],
            relationship=fields["relationship"],
        ),
        education=Education(
            last_school=fields["lastSchool"],
            graduation_year=coerce_int(data.get("graduationYear")),
            qualification=fields["qualification"],
            certificates=fields["certificates"],
        ),
        programme_info=ProgrammeInfo(
            programme=fields["programme"],
            level=fields["programmeLevel"],
            start_date=_iso_date(data.get("startDate")),
        ),
        disability_info=DisabilityInfo(
            disability_type=fields["disabilityType"],
            support_needs=fields["supportNeeds"],
            sign_language_experience=fields["signLanguage"],
        ),
        employment=Employment(
            status=fields["currentEmployment"],
            job_title=fields["jobTitle"],
            years_of_experience=coerce_int(data.get("workExperience")),
        ),
        additional_info=AdditionalInfo(
            motivation=fields["motivation"],
            goals=fields["goals"],
            referral=fields["referral"],
        ),
    )
