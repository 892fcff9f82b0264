"""FastAPI stand-in for the HITL email classification backend"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from hitl_assistant.models.email import EmailContext
from hitl_assistant.models.server import (
    ClassificationPayload,
    DecisionRequest,
    FinalResult,
    InterruptData,
    StartWorkflowRequest,
    WorkflowResponse,
    WorkflowStatusResponse,
)

logger = logging.getLogger(__name__)

IGNORE_KEYWORDS = ["newsletter", "unsubscribe", "promotion", "no-reply", "noreply", "out of office", "webinar"]
QUESTION_KEYWORDS = ["could you", "can you", "please provide", "requirements", "what is", "when can", "how many"]

DECISIONS_BY_INTERRUPT = {
    "ignore_approval_needed": ["approve_ignore", "process_instead"],
    "auto_reply_approval_needed": [
        "approve_send",
        "edit_reply",
        "send_edited",
        "cancel_edit",
        "convert_to_ignore",
    ],
    "information_needed_questions": ["provide_answers", "custom_reply", "convert_to_ignore"],
}

INTERRUPT_BY_CLASSIFICATION = {
    "ignore": "ignore_approval_needed",
    "auto-reply": "auto_reply_approval_needed",
    "information-needed": "information_needed_questions",
}

# Status polls after process_instead before the next interrupt is visible
CONTINUATION_POLLS = 2

FINISHED_STATUSES = {"completed", "already_completed"}


@dataclass
class ServerWorkflow:
    """In-memory state of one workflow"""

    workflow_id: str
    email: EmailContext
    user_id: str
    classification: ClassificationPayload
    status: str = "waiting_for_human"
    interrupt_data: Optional[InterruptData] = None
    result: Optional[FinalResult] = None
    polls_until_continuation: int = 0
    completed_at: Optional[datetime] = None


@dataclass
class WorkflowRegistry:
    """Workflows by id, plus finished workflows by email message id"""

    workflows: Dict[str, ServerWorkflow] = field(default_factory=dict)
    finished_messages: Dict[str, str] = field(default_factory=dict)

    def clear(self) -> None:
        self.workflows.clear()
        self.finished_messages.clear()


registry = WorkflowRegistry()


app = FastAPI(
    title="HITL Email Assistant Backend",
    description="In-memory email triage workflows with human approval",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def classify_email(email: EmailContext) -> ClassificationPayload:
    """
    Keyword triage into ignore / auto-reply / information-needed.

    Args:
        email: Email to classify

    Returns:
        ClassificationPayload with a proposed reply or clarifying questions
    """
    text = f"{email.subject}\n{email.body}\n{email.sender}".lower()

    if any(k in text for k in IGNORE_KEYWORDS):
        return ClassificationPayload(
            classification="ignore",
            confidence=0.85,
            reasoning="Bulk or automated message that needs no response",
        )

    if "?" in email.body or any(k in text for k in QUESTION_KEYWORDS):
        return ClassificationPayload(
            classification="information-needed",
            confidence=0.72,
            reasoning="Sender asks for details that are not in the mailbox",
            proposed_reply=_draft_reply(email),
            clarifying_questions=_clarifying_questions(email),
        )

    return ClassificationPayload(
        classification="auto-reply",
        confidence=0.80,
        reasoning="Routine message that can be acknowledged automatically",
        proposed_reply=_draft_reply(email),
    )


def _draft_reply(email: EmailContext) -> str:
    return (
        f"Hello,\n\nThank you for your message regarding \"{email.subject}\". "
        "We have received it and will get back to you shortly.\n\nBest regards"
    )


def _clarifying_questions(email: EmailContext) -> List[str]:
    questions = [line.strip() for line in email.body.splitlines() if line.strip().endswith("?")]
    return questions or [f"What information does the sender need about \"{email.subject}\"?"]


def _interrupt_for(classification: ClassificationPayload, inline: bool = False) -> InterruptData:
    interrupt_type = INTERRUPT_BY_CLASSIFICATION[classification.classification]
    interrupt = InterruptData(
        type=interrupt_type,
        available_decisions=list(DECISIONS_BY_INTERRUPT[interrupt_type]),
        message=f"Please review the {classification.classification} classification",
    )
    if inline:
        interrupt.classification = classification.classification
        interrupt.confidence = classification.confidence
        interrupt.reasoning = classification.reasoning
        interrupt.proposed_reply = classification.proposed_reply
        interrupt.clarifying_questions = list(classification.clarifying_questions)
    return interrupt


def _get_workflow(workflow_id: str) -> ServerWorkflow:
    workflow = registry.workflows.get(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Workflow {workflow_id} not found")
    return workflow


def _status_response(workflow: ServerWorkflow) -> WorkflowStatusResponse:
    return WorkflowStatusResponse(
        workflow_id=workflow.workflow_id,
        status=workflow.status,
        result=workflow.result,
        interrupt_data=workflow.interrupt_data,
    )


def _finish(workflow: ServerWorkflow, result: FinalResult) -> None:
    workflow.status = "completed"
    workflow.interrupt_data = None
    workflow.result = result
    workflow.completed_at = datetime.now(timezone.utc)
    if workflow.email.message_id:
        registry.finished_messages[workflow.email.message_id] = workflow.workflow_id
    logger.info("Workflow %s completed: %s", workflow.workflow_id, result.final_action)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": "HITL Email Assistant Backend",
        "version": "1.0.0",
        "endpoints": {
            "start_workflow": "/api/hitl/workflow",
            "workflow_status": "/api/hitl/workflow/{workflow_id}",
            "decision": "/api/hitl/workflow/{workflow_id}/decision",
            "health": "/api/health",
        },
    }


@app.post("/api/hitl/workflow", response_model=WorkflowResponse, response_model_exclude_none=True)
async def start_workflow(request: StartWorkflowRequest) -> WorkflowResponse:
    """
    Classify an email and pause for a human decision.

    Emails whose message_id already went through a completed workflow are
    answered with status already_completed and the earlier outcome.
    """
    email = request.email
    workflow_id = str(uuid.uuid4())

    previous_id = registry.finished_messages.get(email.message_id) if email.message_id else None
    if previous_id is not None:
        previous = registry.workflows[previous_id]
        interrupt = InterruptData(
            message="This email was already processed",
            completion_date=previous.completed_at.isoformat() if previous.completed_at else None,
            final_classification=previous.classification.classification,
            final_reply=previous.result.auto_response if previous.result else None,
        )
        registry.workflows[workflow_id] = ServerWorkflow(
            workflow_id=workflow_id,
            email=email,
            user_id=request.user_id,
            classification=previous.classification,
            status="already_completed",
            interrupt_data=interrupt,
            result=previous.result,
            completed_at=previous.completed_at,
        )
        logger.info("Email %s already processed by %s", email.message_id, previous_id)
        return WorkflowResponse(
            workflow_id=workflow_id,
            status="already_completed",
            classification=previous.classification,
            interrupt_data=interrupt,
        )

    classification = classify_email(email)
    workflow = ServerWorkflow(
        workflow_id=workflow_id,
        email=email,
        user_id=request.user_id,
        classification=classification,
        interrupt_data=_interrupt_for(classification),
    )
    registry.workflows[workflow_id] = workflow
    logger.info("Workflow %s classified as %s", workflow_id, classification.classification)

    return WorkflowResponse(
        workflow_id=workflow_id,
        status=workflow.status,
        classification=classification,
        interrupt_data=workflow.interrupt_data,
    )


@app.get(
    "/api/hitl/workflow/{workflow_id}",
    response_model=WorkflowStatusResponse,
    response_model_exclude_none=True,
)
async def get_workflow_status(workflow_id: str) -> WorkflowStatusResponse:
    """Current workflow status; advances a pending continuation"""
    workflow = _get_workflow(workflow_id)

    if workflow.status == "processing" and workflow.polls_until_continuation > 0:
        workflow.polls_until_continuation -= 1
        if workflow.polls_until_continuation == 0:
            workflow.status = "waiting_for_human"
            workflow.interrupt_data = _interrupt_for(workflow.classification, inline=True)

    return _status_response(workflow)


@app.post(
    "/api/hitl/workflow/{workflow_id}/decision",
    response_model=WorkflowStatusResponse,
    response_model_exclude_none=True,
)
async def submit_decision(workflow_id: str, request: DecisionRequest) -> WorkflowStatusResponse:
    """
    Apply a human decision.

    Raises:
        HTTPException: 404 for unknown workflows, 400 when the workflow is already
            finished, 422 when the decision is not available or lacks its text
    """
    workflow = _get_workflow(workflow_id)

    if workflow.status in FINISHED_STATUSES:
        raise HTTPException(status_code=400, detail="Workflow already completed")

    token, _, payload = request.decision.partition(":")
    token = token.strip()
    text = request.proposed_reply or payload or None

    available = workflow.interrupt_data.available_decisions if workflow.interrupt_data else []
    if workflow.status != "waiting_for_human" or token not in available:
        raise HTTPException(
            status_code=422, detail=f"Decision '{token}' is not available for workflow {workflow_id}"
        )

    logger.info("Workflow %s received decision %s", workflow_id, token)
    classification = workflow.classification

    if token in ("approve_ignore", "convert_to_ignore"):
        _finish(workflow, FinalResult(final_action="ignored"))

    elif token == "approve_send":
        _finish(
            workflow,
            FinalResult(
                final_action="auto_reply_sent",
                auto_response=text or classification.proposed_reply,
            ),
        )

    elif token in ("send_edited", "custom_reply", "provide_answers"):
        if not text:
            raise HTTPException(status_code=422, detail=f"Decision '{token}' requires text")
        final_action = {
            "send_edited": "auto_reply_sent",
            "custom_reply": "custom_reply_sent",
            "provide_answers": "questions_answered",
        }[token]
        questions = classification.clarifying_questions if token == "provide_answers" else []
        _finish(
            workflow,
            FinalResult(final_action=final_action, auto_response=text, questions_answered=questions),
        )

    elif token == "process_instead":
        workflow.classification = ClassificationPayload(
            classification="auto-reply",
            confidence=0.95,
            reasoning="Reclassified for processing at the user's request",
            proposed_reply=_draft_reply(workflow.email),
        )
        workflow.status = "processing"
        workflow.interrupt_data = None
        workflow.polls_until_continuation = CONTINUATION_POLLS

    # edit_reply and cancel_edit leave the interrupt as it is

    return _status_response(workflow)


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "hitl-email-backend"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
