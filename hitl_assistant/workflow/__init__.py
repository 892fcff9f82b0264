"""HITL workflow engine, decision codec and session store"""

from hitl_assistant.workflow.codec import Decision, DecisionEncodingError
from hitl_assistant.workflow.engine import WorkflowEngine, WorkflowListener
from hitl_assistant.workflow.session_store import SessionStore, UpsertResult

__all__ = [
    "Decision",
    "DecisionEncodingError",
    "SessionStore",
    "UpsertResult",
    "WorkflowEngine",
    "WorkflowListener",
]
