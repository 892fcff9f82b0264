"""Models for the HITL email assistant."""

from hitl_assistant.models.configs import AssistantConfig
from hitl_assistant.models.email import EmailContext
from hitl_assistant.models.workflow import (
    Category,
    Classification,
    DecisionToken,
    ErrorKind,
    Interrupt,
    InterruptType,
    ServerUpdate,
    WorkflowError,
    WorkflowOutcome,
    WorkflowResult,
    WorkflowSession,
    WorkflowStatus,
)

__all__ = [
    "AssistantConfig",
    "EmailContext",
    "Category",
    "Classification",
    "DecisionToken",
    "ErrorKind",
    "Interrupt",
    "InterruptType",
    "ServerUpdate",
    "WorkflowError",
    "WorkflowOutcome",
    "WorkflowResult",
    "WorkflowSession",
    "WorkflowStatus",
]
