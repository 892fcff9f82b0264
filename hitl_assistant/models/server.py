"""Pydantic models for the HITL workflow HTTP endpoints"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from hitl_assistant.models.email import EmailContext

WireStatus = Literal[
    "processing", "waiting_for_human", "awaiting_decision", "completed", "error", "already_completed"
]


class StartWorkflowRequest(BaseModel):
    """Request model for starting a workflow"""

    email: EmailContext = Field(..., description="Email to classify")
    user_id: str = Field(..., description="Mailbox owner the workflow runs for")


class DecisionRequest(BaseModel):
    """Request model for submitting a decision"""

    decision: str = Field(..., description="Decision token, optionally 'token:payload'")
    proposed_reply: Optional[str] = Field(
        None, description="Reply text accompanying approve_send or provide_answers"
    )


class ClassificationPayload(BaseModel):
    """Classification as sent by the backend"""

    classification: Literal["ignore", "auto-reply", "information-needed"] = Field(...)
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = Field(...)
    proposed_reply: Optional[str] = Field(None)
    clarifying_questions: List[str] = Field(default_factory=list)


class InterruptData(BaseModel):
    """Interrupt payload as sent by the backend"""

    type: Optional[
        Literal["ignore_approval_needed", "auto_reply_approval_needed", "information_needed_questions"]
    ] = Field(None)
    available_decisions: List[str] = Field(default_factory=list)
    message: Optional[str] = Field(None)

    # Continuation interrupts repeat the classification inline
    classification: Optional[str] = Field(None)
    confidence: Optional[float] = Field(None)
    reasoning: Optional[str] = Field(None)
    proposed_reply: Optional[str] = Field(None)
    clarifying_questions: Optional[List[str]] = Field(None)

    # Fields for already_completed status
    completion_date: Optional[str] = Field(None)
    final_classification: Optional[str] = Field(None)
    final_reply: Optional[str] = Field(None)


class FinalResult(BaseModel):
    """Terminal workflow result as sent by the backend"""

    final_action: str = Field(...)
    auto_response: Optional[str] = Field(None)
    questions_answered: List[str] = Field(default_factory=list)


class WorkflowResponse(BaseModel):
    """Response model for workflow start"""

    workflow_id: str = Field(..., description="Workflow identifier")
    status: WireStatus = Field(...)
    classification: Optional[ClassificationPayload] = Field(None)
    interrupt_data: Optional[InterruptData] = Field(None)
    error: Optional[str] = Field(None)


class WorkflowStatusResponse(BaseModel):
    """Response model for workflow status and decision endpoints"""

    workflow_id: str = Field(..., description="Workflow identifier")
    status: WireStatus = Field(...)
    result: Optional[FinalResult] = Field(None)
    interrupt_data: Optional[InterruptData] = Field(None)
    error: Optional[str] = Field(None)
