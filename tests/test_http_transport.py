"""Unit tests for the HTTP transport"""

import asyncio
from unittest.mock import MagicMock

import pytest
import requests
from fakes import sample_email

from hitl_assistant.models.configs import BackendSettings
from hitl_assistant.transport.base import TransportError, WorkflowAlreadyCompletedError
from hitl_assistant.transport.http_transport import HttpWorkflowTransport


def make_response(status_code=200, data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"content-type": "application/json"}
    response.json.return_value = data if data is not None else {}
    response.text = text
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def transport(session):
    settings = BackendSettings(
        base_url="http://backend.local/", user_id="me@example.com", request_timeout_seconds=5
    )
    return HttpWorkflowTransport(settings, session=session)


class TestHttpWorkflowTransport:
    """Test request construction and error mapping"""

    @pytest.mark.unit
    def test_start_workflow(self, transport, session):
        session.post.return_value = make_response(data={"workflow_id": "wf-1"})

        data = asyncio.run(transport.start_workflow(sample_email()))

        assert data == {"workflow_id": "wf-1"}
        args, kwargs = session.post.call_args
        assert args[0] == "http://backend.local/api/hitl/workflow"
        assert kwargs["json"]["user_id"] == "me@example.com"
        assert kwargs["json"]["email"]["subject"] == "Meeting next week"
        assert kwargs["timeout"] == 5

    @pytest.mark.unit
    def test_submit_bare_decision(self, transport, session):
        session.post.return_value = make_response(data={"status": "completed"})

        asyncio.run(transport.submit_decision("wf-1", "approve_ignore"))

        args, kwargs = session.post.call_args
        assert args[0] == "http://backend.local/api/hitl/workflow/wf-1/decision"
        assert kwargs["json"] == {"decision": "approve_ignore"}

    @pytest.mark.unit
    def test_submit_envelope_decision(self, transport, session):
        session.post.return_value = make_response(data={"status": "completed"})
        envelope = {"decision": "approve_send", "proposed_reply": "Hi there"}

        asyncio.run(transport.submit_decision("wf-1", envelope))

        assert session.post.call_args.kwargs["json"] == envelope

    @pytest.mark.unit
    def test_submit_decision_400_means_already_completed(self, transport, session):
        session.post.return_value = make_response(
            status_code=400, data={"detail": "Workflow already completed"}
        )

        with pytest.raises(WorkflowAlreadyCompletedError) as exc_info:
            asyncio.run(transport.submit_decision("wf-1", "approve_send"))

        assert str(exc_info.value) == "Workflow already completed"

    @pytest.mark.unit
    def test_server_error_is_retryable(self, transport, session):
        session.get.return_value = make_response(
            status_code=503, data={"error": {"message": "overloaded"}}
        )

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(transport.poll_status("wf-1"))

        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable
        assert "overloaded" in str(exc_info.value)

    @pytest.mark.unit
    def test_client_error_is_not_retryable(self, transport, session):
        session.get.return_value = make_response(status_code=404, data={"detail": "not found"})

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(transport.poll_status("wf-1"))

        assert not exc_info.value.retryable

    @pytest.mark.unit
    def test_non_json_error_body(self, transport, session):
        response = make_response(status_code=502, text="Bad Gateway")
        response.headers = {"content-type": "text/html"}
        session.get.return_value = response

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(transport.poll_status("wf-1"))

        assert "Bad Gateway" in str(exc_info.value)

    @pytest.mark.unit
    def test_connection_error_wrapped(self, transport, session):
        session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(transport.start_workflow(sample_email()))

        assert exc_info.value.retryable

    @pytest.mark.unit
    def test_non_object_json_rejected(self, transport, session):
        session.get.return_value = make_response(data=["wf-1"])

        with pytest.raises(TransportError):
            asyncio.run(transport.poll_status("wf-1"))

    @pytest.mark.unit
    def test_health_check(self, transport, session):
        session.get.return_value = make_response()
        assert asyncio.run(transport.health_check())

        session.get.side_effect = requests.ConnectionError("refused")
        assert not asyncio.run(transport.health_check())
