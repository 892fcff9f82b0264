"""Pydantic models for HITL workflow sessions"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkflowStatus(str, Enum):
    """Lifecycle status of a server-side workflow as seen by the client"""

    PROCESSING = "processing"
    AWAITING_DECISION = "awaiting_decision"
    COMPLETED = "completed"
    ERROR = "error"
    ALREADY_COMPLETED = "already_completed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.ALREADY_COMPLETED})


class Category(str, Enum):
    """Classification assigned to an email"""

    IGNORE = "ignore"
    AUTO_REPLY = "auto_reply"
    INFORMATION_NEEDED = "information_needed"


class InterruptType(str, Enum):
    """Kind of human input the server is waiting for"""

    IGNORE_APPROVAL = "ignore_approval"
    AUTO_REPLY_APPROVAL = "auto_reply_approval"
    INFORMATION_NEEDED = "information_needed"


class DecisionToken(str, Enum):
    """Decision tokens known to the client"""

    APPROVE_SEND = "approve_send"
    APPROVE_IGNORE = "approve_ignore"
    PROCESS_INSTEAD = "process_instead"
    CONVERT_TO_IGNORE = "convert_to_ignore"
    EDIT_REPLY = "edit_reply"
    CANCEL_EDIT = "cancel_edit"
    SEND_EDITED = "send_edited"
    CUSTOM_REPLY = "custom_reply"
    PROVIDE_ANSWERS = "provide_answers"


class ErrorKind(str, Enum):
    """Typed error conditions reported by the engine"""

    TRANSPORT_FAILURE = "transport_failure"
    NO_ACTIONABLE_DECISION = "no_actionable_decision"
    CONTINUATION_TIMEOUT = "continuation_timeout"
    ALREADY_COMPLETED = "already_completed"
    OPERATION_IN_PROGRESS = "operation_in_progress"
    INVALID_STATE = "invalid_state"
    INVALID_DECISION = "invalid_decision"
    SERVER_ERROR = "server_error"


class WorkflowError(BaseModel):
    """Error condition attached to a session or an engine outcome"""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind = Field(..., description="Error category")
    message: str = Field(default="", description="Human-readable detail")
    retryable: bool = Field(default=False, description="Whether repeating the call may succeed")


class Classification(BaseModel):
    """Normalized classification result"""

    category: Category = Field(..., description="Classification category")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Confidence score 0-1")
    reasoning: str = Field(default="", description="Explanation for the classification")
    proposed_reply: Optional[str] = Field(None, description="Proposed reply text")
    clarifying_questions: List[str] = Field(
        default_factory=list, description="Questions the user should answer"
    )


class Interrupt(BaseModel):
    """Normalized interrupt payload"""

    interrupt_type: Optional[InterruptType] = Field(
        None, description="Interrupt kind, None when the server sent an unknown type"
    )
    available_decisions: List[str] = Field(
        default_factory=list, description="Decision tokens the server currently accepts"
    )
    message: Optional[str] = Field(None, description="Server-provided message")

    # Only present for already completed workflows
    completion_date: Optional[str] = Field(None, description="When the workflow finished")
    final_classification: Optional[str] = Field(None, description="Final classification")
    final_reply: Optional[str] = Field(None, description="Reply that was sent")

    @property
    def is_actionable(self) -> bool:
        return bool(self.available_decisions)


class WorkflowResult(BaseModel):
    """Terminal payload of a completed workflow"""

    final_action: str = Field(..., description="Action the workflow finished with")
    auto_response: Optional[str] = Field(None, description="Reply sent on the user's behalf")
    questions_answered: List[str] = Field(
        default_factory=list, description="Clarifying questions that were addressed"
    )


class WorkflowSession(BaseModel):
    """
    Client-side record of one server-tracked workflow.

    Updated through the SessionStore only; the store keeps the invariants that an
    awaiting session has actionable decisions and a completed session has a result.
    """

    workflow_id: str = Field(..., description="Server-assigned workflow identifier")
    status: WorkflowStatus = Field(default=WorkflowStatus.PROCESSING)
    classification: Optional[Classification] = Field(None)
    interrupt: Optional[Interrupt] = Field(None)
    result: Optional[WorkflowResult] = Field(None)

    # Local edit sub-state, never sent to the server
    editing: bool = Field(default=False, description="Whether the reply is being edited")
    edit_buffer: Optional[str] = Field(None, description="Reply text frozen for editing")

    error: Optional[WorkflowError] = Field(None, description="Last error attached to the session")


class ServerUpdate(BaseModel):
    """A start, decision or status response after normalization"""

    workflow_id: Optional[str] = Field(None)
    status: Optional[WorkflowStatus] = Field(
        None, description="Decoded status, None when missing or unrecognized"
    )
    raw_status: Optional[str] = Field(None, description="Status string as sent by the server")
    classification: Optional[Classification] = Field(None)
    interrupt: Optional[Interrupt] = Field(None)
    result: Optional[WorkflowResult] = Field(None)
    error: Optional[str] = Field(None)


class WorkflowOutcome(BaseModel):
    """Return value of engine entry points"""

    session: Optional[WorkflowSession] = Field(None, description="Session after the call")
    error: Optional[WorkflowError] = Field(None, description="Error raised by the call, if any")

    @property
    def ok(self) -> bool:
        return self.error is None
