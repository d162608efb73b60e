"""
Test suite for the form submission client

Tests cover:
- Local-only mode with client-side references
- Remote mode against the application server
- Transport and malformed-response failures
- In-flight submission guard
"""
import json
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import httpx
import pytest
from fastapi.testclient import TestClient

from src.client.form import ApplicationForm, FormView
from src.client.local_store import LocalStore, LocalStoreError
from src.client.submission import (
    LOCAL_FAILURE_NOTICE,
    REMOTE_FAILURE_NOTICE,
    OutcomeStatus,
    SubmissionClient,
    SubmissionMode,
)
from src.services.reference import is_reference_number
from src.services.storage import FileStorageSink


@pytest.fixture
def form(valid_application: dict[str, Any]) -> ApplicationForm:
    form = ApplicationForm.standard()
    form.fill(valid_application)
    return form


def mock_http_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), base_url="http://testserver")


class TestLocalMode:
    def test_success_stores_record_and_confirms(self, form: ApplicationForm, tmp_path: Path):
        # Arrange
        store = LocalStore(tmp_path / "store.json")
        client = SubmissionClient(form, mode=SubmissionMode.LOCAL, store=store)

        # Act
        outcome = client.submit()

        # Assert
        assert outcome.status == OutcomeStatus.SUCCESS
        assert is_reference_number(outcome.reference_number)
        assert form.view == FormView.CONFIRMATION
        assert form.reference_number == outcome.reference_number

        records = store.list()
        assert len(records) == 1
        assert records[0]["referenceNumber"] == outcome.reference_number
        assert records[0]["firstName"] == "Achieng"
        assert records[0]["submittedAt"]

    def test_invalid_form_not_stored(self, form: ApplicationForm, tmp_path: Path):
        store = LocalStore(tmp_path / "store.json")
        form.set("email", "not-an-email")

        outcome = SubmissionClient(form, store=store).submit()

        assert outcome.status == OutcomeStatus.INVALID
        assert store.list() == []
        assert form.view == FormView.INPUT
        assert "email" in form.errors()

    def test_corrupt_store_keeps_form(self, form: ApplicationForm, tmp_path: Path):
        path = tmp_path / "store.json"
        path.write_text("{corrupt", encoding="utf-8")

        outcome = SubmissionClient(form, store=LocalStore(path)).submit()

        assert outcome.status == OutcomeStatus.FAILED
        assert form.notice == LOCAL_FAILURE_NOTICE
        assert form.view == FormView.INPUT
        assert form["firstName"].value == "Achieng"

    def test_local_mode_requires_store(self, form: ApplicationForm):
        with pytest.raises(ValueError):
            SubmissionClient(form, mode=SubmissionMode.LOCAL)


class TestRemoteMode:
    @pytest.mark.integration
    def test_success_against_server(
        self,
        client: TestClient,
        file_sink: FileStorageSink,
        form: ApplicationForm,
    ):
        # Act
        outcome = SubmissionClient(form, mode=SubmissionMode.REMOTE, http_client=client).submit()

        # Assert
        assert outcome.status == OutcomeStatus.SUCCESS
        assert form.view == FormView.CONFIRMATION
        stored = file_sink.get(outcome.reference_number)
        assert stored["personalInfo"]["firstName"] == "Achieng"

    def test_server_rejection_shows_message(self, client: TestClient, form: ApplicationForm):
        # Optional on the form, required by the server
        form.set("currentEmployment", "")

        outcome = SubmissionClient(form, mode=SubmissionMode.REMOTE, http_client=client).submit()

        assert outcome.status == OutcomeStatus.FAILED
        assert form.notice == "Error: Validation failed"
        assert form.view == FormView.INPUT
        assert form.reference_number is None

    def test_posts_flat_json(self, form: ApplicationForm):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"success": True, "message": "ok", "referenceNumber": "STJT-2026-123456-0001"},
            )

        outcome = SubmissionClient(
            form, mode=SubmissionMode.REMOTE, http_client=mock_http_client(handler)
        ).submit()

        assert outcome.reference_number == "STJT-2026-123456-0001"
        assert seen["path"] == "/submit"
        assert seen["body"] == form.values()

    def test_transport_failure(self, form: ApplicationForm):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = SubmissionClient(
            form, mode=SubmissionMode.REMOTE, http_client=mock_http_client(handler)
        ).submit()

        assert outcome.status == OutcomeStatus.FAILED
        assert form.notice == REMOTE_FAILURE_NOTICE
        assert form.reference_number is None
        assert form["email"].value == "achieng.otieno@example.com"

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(502, text="<html>Bad Gateway</html>"),
            httpx.Response(200, json={"unexpected": True}),
            httpx.Response(200, json={"success": True, "message": "ok"}),
        ],
    )
    def test_malformed_response_never_invents_reference(self, form: ApplicationForm, response):
        outcome = SubmissionClient(
            form, mode=SubmissionMode.REMOTE, http_client=mock_http_client(lambda request: response)
        ).submit()

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reference_number is None
        assert form.view == FormView.INPUT

    def test_remote_mode_requires_http_client(self, form: ApplicationForm):
        with pytest.raises(ValueError):
            SubmissionClient(form, mode=SubmissionMode.REMOTE)


class TestInFlightGuard:
    def test_reentrant_submit_ignored(self, form: ApplicationForm):
        # Arrange: the store write triggers a second submit
        store = Mock(spec=LocalStore)
        client = SubmissionClient(form, store=store)
        nested = []
        store.append.side_effect = lambda record: nested.append(client.submit())

        # Act
        outcome = client.submit()

        # Assert
        assert outcome.status == OutcomeStatus.SUCCESS
        assert [n.status for n in nested] == [OutcomeStatus.IGNORED]
        assert store.append.call_count == 1
        assert not client.in_flight

    def test_guard_released_after_failure(self, form: ApplicationForm):
        store = Mock(spec=LocalStore)
        store.append.side_effect = LocalStoreError("disk full")
        client = SubmissionClient(form, store=store)

        assert client.submit().status == OutcomeStatus.FAILED
        assert not client.in_flight
