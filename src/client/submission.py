"""
Form submission client

Runs the final form validation, then either stores the application locally
(demo mode, reference generated client-side) or posts it to the application
server (reference always comes from the server).
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
from pydantic import ValidationError

from ..schemas.applications import SubmissionResponse
from ..services.reference import ReferenceGenerator, reference_generator, utc_now
from .form import ApplicationForm, FormValidator
from .local_store import LocalStore, LocalStoreError

logger = logging.getLogger(__name__)

SUBMIT_ENDPOINT = "/submit"
LOCAL_FAILURE_NOTICE = "An error occurred while submitting your application. Please try again."
REMOTE_FAILURE_NOTICE = (
    "We could not reach the application server. Your answers are still on the form, please try again."
)


class SubmissionMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SubmissionOutcome:
    status: OutcomeStatus
    reference_number: Optional[str] = None
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


class SubmissionClient:
    """
    Submits an ApplicationForm

    Only one submission runs at a time; a second submit while one is in
    flight is ignored.
    """

    def __init__(
        self,
        form: ApplicationForm,
        mode: SubmissionMode = SubmissionMode.LOCAL,
        store: Optional[LocalStore] = None,
        http_client: Optional[httpx.Client] = None,
        endpoint: str = SUBMIT_ENDPOINT,
        validator: Optional[FormValidator] = None,
        generator: ReferenceGenerator = reference_generator,
    ):
        if mode == SubmissionMode.LOCAL and store is None:
            raise ValueError("Local submission mode needs a LocalStore")
        if mode == SubmissionMode.REMOTE and http_client is None:
            raise ValueError("Remote submission mode needs an http client")

        self.form = form
        self.mode = mode
        self.store = store
        self.http_client = http_client
        self.endpoint = endpoint
        self.validator = validator or FormValidator()
        self.generator = generator
        self._in_flight = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def submit(self) -> SubmissionOutcome:
        if not self._in_flight.acquire(blocking=False):
            logger.info("Submission already in progress, ignoring")
            return SubmissionOutcome(OutcomeStatus.IGNORED)

        try:
            if not self.validator.validate_form(self.form):
                return SubmissionOutcome(OutcomeStatus.INVALID)

            if self.mode == SubmissionMode.LOCAL:
                return self._submit_local()
            return self._submit_remote()
        finally:
            self._in_flight.release()

    def _submit_local(self) -> SubmissionOutcome:
        reference_number = self.generator.generate()
        record = dict(self.form.values())
        record["referenceNumber"] = reference_number
        record["submittedAt"] = utc_now().isoformat()

        try:
            self.store.append(record)
        except LocalStoreError as e:
            logger.error(f"Local store write failed: {e}")
            self.form.show_notice(LOCAL_FAILURE_NOTICE)
            return SubmissionOutcome(OutcomeStatus.FAILED, message=LOCAL_FAILURE_NOTICE)

        logger.info(f"Application stored locally: {reference_number}")
        self.form.show_confirmation(reference_number)
        return SubmissionOutcome(OutcomeStatus.SUCCESS, reference_number=reference_number)

    def _submit_remote(self) -> SubmissionOutcome:
        try:
            response = self.http_client.post(self.endpoint, json=self.form.values())
            result = SubmissionResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"Submission request failed: {e}")
            self.form.show_notice(REMOTE_FAILURE_NOTICE)
            return SubmissionOutcome(OutcomeStatus.FAILED, message=REMOTE_FAILURE_NOTICE)

        if result.success and result.reference_number:
            self.form.show_confirmation(result.reference_number)
            return SubmissionOutcome(OutcomeStatus.SUCCESS, reference_number=result.reference_number)

        message = f"Error: {result.message}"
        logger.info(f"Server rejected submission ({response.status_code}): {result.message}")
        self.form.show_notice(message)
        return SubmissionOutcome(OutcomeStatus.FAILED, message=message)
