"""Unit tests for the session store"""

import pytest

from hitl_assistant.models.workflow import Interrupt, WorkflowResult, WorkflowStatus
from hitl_assistant.workflow.session_store import DEFAULT_RESULT, SessionStore


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def awaiting_interrupt():
    return Interrupt(available_decisions=["approve_send", "edit_reply"])


class TestSessionStore:
    """Test session upserts and terminal-status protection"""

    @pytest.mark.unit
    def test_upsert_creates_session(self, store, awaiting_interrupt):
        result = store.upsert(
            "wf-1", status=WorkflowStatus.AWAITING_DECISION, interrupt=awaiting_interrupt
        )

        assert not result.conflict
        assert result.session.workflow_id == "wf-1"
        assert result.session.status == WorkflowStatus.AWAITING_DECISION
        assert "wf-1" in store
        assert len(store) == 1

    @pytest.mark.unit
    def test_upsert_merges_fields(self, store, awaiting_interrupt):
        store.upsert("wf-1", status="awaiting_decision", interrupt=awaiting_interrupt)
        session = store.upsert("wf-1", editing=True, edit_buffer="draft").session

        assert session.status == WorkflowStatus.AWAITING_DECISION
        assert session.interrupt == awaiting_interrupt
        assert session.editing
        assert session.edit_buffer == "draft"

    @pytest.mark.unit
    def test_get_returns_copy(self, store):
        store.upsert("wf-1", edit_buffer="original")

        copy = store.get("wf-1")
        copy.edit_buffer = "changed"

        assert store.get("wf-1").edit_buffer == "original"

    @pytest.mark.unit
    def test_get_unknown_returns_none(self, store):
        assert store.get("missing") is None

    @pytest.mark.unit
    def test_completed_never_regresses(self, store):
        store.upsert("wf-1", status=WorkflowStatus.COMPLETED)

        result = store.upsert("wf-1", status=WorkflowStatus.AWAITING_DECISION)

        assert result.conflict
        assert result.session.status == WorkflowStatus.COMPLETED
        assert store.get("wf-1").status == WorkflowStatus.COMPLETED

    @pytest.mark.unit
    def test_already_completed_never_regresses(self, store):
        store.upsert("wf-1", status=WorkflowStatus.ALREADY_COMPLETED)

        assert store.upsert("wf-1", status=WorkflowStatus.PROCESSING).conflict
        assert store.upsert("wf-1", status=WorkflowStatus.ERROR).conflict

    @pytest.mark.unit
    def test_completed_keeps_its_status(self, store):
        store.upsert("wf-1", status=WorkflowStatus.COMPLETED)

        result = store.upsert("wf-1", status=WorkflowStatus.ALREADY_COMPLETED)

        assert result.conflict
        assert result.session.status == WorkflowStatus.COMPLETED

    @pytest.mark.unit
    def test_late_completed_keeps_already_completed_metadata(self, store):
        metadata = Interrupt(final_reply="Sent yesterday", completion_date="2024-05-01")
        store.upsert("wf-1", status=WorkflowStatus.ALREADY_COMPLETED, interrupt=metadata)

        result = store.upsert("wf-1", status=WorkflowStatus.COMPLETED)

        assert result.conflict
        session = store.get("wf-1")
        assert session.status == WorkflowStatus.ALREADY_COMPLETED
        assert session.interrupt == metadata
        assert session.result is None

    @pytest.mark.unit
    def test_error_status_can_be_left(self, store):
        store.upsert("wf-1", status=WorkflowStatus.ERROR)

        result = store.upsert("wf-1", status=WorkflowStatus.AWAITING_DECISION)

        assert not result.conflict

    @pytest.mark.unit
    def test_completed_clears_interrupt_and_edit_state(self, store, awaiting_interrupt):
        store.upsert(
            "wf-1",
            status=WorkflowStatus.AWAITING_DECISION,
            interrupt=awaiting_interrupt,
            editing=True,
            edit_buffer="draft",
        )

        session = store.upsert("wf-1", status=WorkflowStatus.COMPLETED).session

        assert session.interrupt is None
        assert not session.editing
        assert session.edit_buffer is None
        assert session.result == DEFAULT_RESULT

    @pytest.mark.unit
    def test_completed_upsert_is_idempotent(self, store):
        result = WorkflowResult(final_action="ignored")

        first = store.upsert("wf-1", status=WorkflowStatus.COMPLETED, result=result).session
        second = store.upsert("wf-1", status=WorkflowStatus.COMPLETED, result=result).session

        assert first == second
        assert second.result == result

    @pytest.mark.unit
    def test_rejects_invalid_fields(self, store):
        with pytest.raises(ValueError):
            store.upsert("")
        with pytest.raises(ValueError):
            store.upsert("wf-1", workflow_id="wf-2")
        with pytest.raises(ValueError):
            store.upsert("wf-1", colour="blue")

    @pytest.mark.unit
    def test_remove(self, store):
        store.upsert("wf-1")
        store.upsert("wf-2")

        assert store.remove("wf-1")
        assert not store.remove("wf-1")
        assert store.workflow_ids() == ["wf-2"]
