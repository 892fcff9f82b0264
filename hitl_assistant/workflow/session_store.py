"""In-memory store of workflow sessions keyed by workflow id"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from hitl_assistant.models.workflow import WorkflowResult, WorkflowSession, WorkflowStatus

logger = logging.getLogger(__name__)

DEFAULT_RESULT = WorkflowResult(final_action="completed")


@dataclass(frozen=True)
class UpsertResult:
    """Session after an upsert and whether the update was refused"""

    session: WorkflowSession
    conflict: bool = False


class SessionStore:
    """
    Mapping from workflow id to WorkflowSession.

    upsert is the only mutation path and the only place that enforces that a
    terminal session (completed, already_completed) keeps its status once
    reached. Sessions handed out are copies.
    """

    def __init__(self):
        self._sessions: Dict[str, WorkflowSession] = {}

    def upsert(self, workflow_id: str, **fields: Any) -> UpsertResult:
        """
        Merge fields into the session, creating it if absent.

        Args:
            workflow_id: Workflow identifier
            **fields: WorkflowSession fields to overwrite

        Returns:
            UpsertResult with the stored session; conflict=True when the update
            would have changed the status of a terminal session and was not applied

        Raises:
            ValueError: If fields contains workflow_id or unknown field names
        """
        if not workflow_id:
            raise ValueError("workflow_id is required")
        if "workflow_id" in fields:
            raise ValueError("workflow_id cannot be changed")
        unknown = set(fields) - set(WorkflowSession.model_fields)
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")

        current = self._sessions.get(workflow_id)
        incoming_status = fields.get("status")
        if incoming_status is not None:
            incoming_status = WorkflowStatus(incoming_status)
            fields["status"] = incoming_status

        if (
            current is not None
            and current.status.is_terminal
            and incoming_status is not None
            and incoming_status != current.status
        ):
            logger.warning(
                "Ignoring %s update for %s workflow %s",
                incoming_status.value,
                current.status.value,
                workflow_id,
            )
            return UpsertResult(session=current.model_copy(deep=True), conflict=True)

        if current is None:
            merged = WorkflowSession(workflow_id=workflow_id)
        else:
            merged = current

        data = merged.model_dump()
        data.update(fields)
        session = WorkflowSession.model_validate(data)

        if session.status == WorkflowStatus.COMPLETED:
            session = session.model_copy(
                update={
                    "interrupt": None,
                    "editing": False,
                    "edit_buffer": None,
                    "result": session.result or DEFAULT_RESULT,
                }
            )

        self._sessions[workflow_id] = session
        return UpsertResult(session=session.model_copy(deep=True))

    def get(self, workflow_id: str) -> Optional[WorkflowSession]:
        session = self._sessions.get(workflow_id)
        return session.model_copy(deep=True) if session is not None else None

    def remove(self, workflow_id: str) -> bool:
        """Drop a session; returns whether it existed"""
        return self._sessions.pop(workflow_id, None) is not None

    def workflow_ids(self) -> List[str]:
        return list(self._sessions)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
