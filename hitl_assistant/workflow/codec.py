"""
Decision codec: wire encoding of user decisions and normalization of backend payloads.

Every field-name variant the backend uses is handled here so the engine only ever
sees the normalized models from hitl_assistant.models.workflow.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from hitl_assistant.models.workflow import (
    Category,
    Classification,
    DecisionToken,
    Interrupt,
    InterruptType,
    ServerUpdate,
    WorkflowResult,
    WorkflowStatus,
)

# Tokens sent as {"decision": ..., "proposed_reply": ...} when they carry text
ENVELOPE_TOKENS = frozenset({DecisionToken.APPROVE_SEND.value, DecisionToken.PROVIDE_ANSWERS.value})

# Tokens sent as "token:text"; the text is mandatory
PARAMETERIZED_TOKENS = frozenset({DecisionToken.SEND_EDITED.value, DecisionToken.CUSTOM_REPLY.value})

# Tokens that resolve on the client and never reach the backend
LOCAL_TOKENS = frozenset({DecisionToken.EDIT_REPLY.value, DecisionToken.CANCEL_EDIT.value})

BARE_TOKENS = frozenset(
    {
        DecisionToken.APPROVE_IGNORE.value,
        DecisionToken.PROCESS_INSTEAD.value,
        DecisionToken.CONVERT_TO_IGNORE.value,
        DecisionToken.EDIT_REPLY.value,
        DecisionToken.CANCEL_EDIT.value,
    }
)

ENVELOPE_DECISION_FIELD = "decision"
ENVELOPE_TEXT_FIELD = "proposed_reply"

CATEGORY_ALIASES = {
    "ignore": Category.IGNORE,
    "auto-reply": Category.AUTO_REPLY,
    "auto_reply": Category.AUTO_REPLY,
    "information-needed": Category.INFORMATION_NEEDED,
    "information_needed": Category.INFORMATION_NEEDED,
}

INTERRUPT_TYPE_ALIASES = {
    "ignore_approval_needed": InterruptType.IGNORE_APPROVAL,
    "auto_reply_approval_needed": InterruptType.AUTO_REPLY_APPROVAL,
    "information_needed_questions": InterruptType.INFORMATION_NEEDED,
}

STATUS_ALIASES = {
    "pending": WorkflowStatus.PROCESSING,
    "processing": WorkflowStatus.PROCESSING,
    "waiting_for_human": WorkflowStatus.AWAITING_DECISION,
    "awaiting_decision": WorkflowStatus.AWAITING_DECISION,
    "completed": WorkflowStatus.COMPLETED,
    "already_completed": WorkflowStatus.ALREADY_COMPLETED,
    "error": WorkflowStatus.ERROR,
    "cancelled": WorkflowStatus.ERROR,
}

# Defaults used when a continuation interrupt carries the classification inline
CONTINUATION_CONFIDENCE = 0.95
CONTINUATION_REASONING = "Continued from previous classification"


class DecisionEncodingError(ValueError):
    """A decision cannot be expressed in the wire format"""


@dataclass(frozen=True)
class Decision:
    """A user decision: a token with an optional free-text payload"""

    token: str
    payload: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.token in LOCAL_TOKENS


WireToken = Union[str, dict]


def parse_decision(raw: Union[Decision, str, dict]) -> Decision:
    """
    Turn raw user input into a Decision.

    Accepts a Decision, a "token" or "token:payload" string (split on the first
    colon), or an envelope mapping.
    """
    if isinstance(raw, Decision):
        return raw
    if isinstance(raw, (str, dict)):
        return decode_decision(raw)
    raise DecisionEncodingError(f"Unsupported decision input: {raw!r}")


def encode_decision(decision: Decision) -> WireToken:
    """
    Encode a decision into its wire representation.

    approve_send and provide_answers with text use the envelope because the backend
    only tells "approve as proposed" from "approve this text" by its explicit field.
    """
    token = (decision.token or "").strip()
    if not token:
        raise DecisionEncodingError("Decision token is empty")

    payload = decision.payload

    if token in ENVELOPE_TOKENS:
        if payload:
            return {ENVELOPE_DECISION_FIELD: token, ENVELOPE_TEXT_FIELD: payload}
        return token

    if token in PARAMETERIZED_TOKENS:
        if not payload:
            raise DecisionEncodingError(f"Decision '{token}' requires text")
        return f"{token}:{payload}"

    if token in BARE_TOKENS:
        if payload:
            raise DecisionEncodingError(f"Decision '{token}' does not take text")
        return token

    # Server-supplied token the client has no special handling for
    return f"{token}:{payload}" if payload else token


def decode_decision(wire: WireToken) -> Decision:
    """Inverse of encode_decision"""
    if isinstance(wire, dict):
        token = wire.get(ENVELOPE_DECISION_FIELD)
        if not isinstance(token, str) or not token:
            raise DecisionEncodingError(f"Envelope has no decision: {wire!r}")
        text = wire.get(ENVELOPE_TEXT_FIELD)
        return Decision(token=token, payload=str(text) if text is not None else None)

    if not isinstance(wire, str) or not wire.strip():
        raise DecisionEncodingError(f"Invalid decision: {wire!r}")

    token, sep, payload = wire.partition(":")
    if not sep:
        return Decision(token=token.strip())
    return Decision(token=token.strip(), payload=payload)


def decode_status(raw: Any) -> Optional[WorkflowStatus]:
    """Map a backend status string to WorkflowStatus, None if unrecognized"""
    if not isinstance(raw, str):
        return None
    return STATUS_ALIASES.get(raw.strip().lower())


def decode_classification(raw: Any) -> Optional[Classification]:
    """
    Normalize a classification payload.

    The backend labels the category 'type' or 'classification', the proposed content
    'auto_response' or 'proposed_reply', and the questions 'questions' or
    'clarifying_questions'. Returns None when no usable category is present.
    """
    if not isinstance(raw, dict):
        return None

    category = _decode_category(_first_present(raw, "type", "classification"))
    if category is None:
        return None

    proposed_reply = _first_present(raw, "auto_response", "proposed_reply", "proposed_auto_reply")

    return Classification(
        category=category,
        confidence=_decode_confidence(raw.get("confidence")),
        reasoning=str(raw.get("reasoning") or ""),
        proposed_reply=str(proposed_reply) if proposed_reply else None,
        clarifying_questions=_decode_text_list(
            _first_present(raw, "questions", "clarifying_questions")
        ),
    )


def decode_interrupt(raw: Any) -> Optional[Interrupt]:
    """
    Normalize interrupt data.

    An unrecognized interrupt type decodes to an interrupt without decisions,
    which the engine reports as "no actionable decision".
    """
    if not isinstance(raw, dict):
        return None

    interrupt_type = INTERRUPT_TYPE_ALIASES.get(
        str(_first_present(raw, "type", "interrupt_type") or "")
    )
    decisions = _decode_text_list(raw.get("available_decisions")) if interrupt_type else []

    return Interrupt(
        interrupt_type=interrupt_type,
        available_decisions=decisions,
        message=_optional_text(raw.get("message")),
        completion_date=_optional_text(raw.get("completion_date")),
        final_classification=_optional_text(raw.get("final_classification")),
        final_reply=_optional_text(raw.get("final_reply")),
    )


def decode_result(raw: Any) -> Optional[WorkflowResult]:
    """Normalize a terminal result from 'result' or 'final_result'"""
    if not isinstance(raw, dict):
        return None

    data = raw.get("result")
    if not isinstance(data, dict):
        data = raw.get("final_result")
    if not isinstance(data, dict):
        return None

    return WorkflowResult(
        final_action=str(data.get("final_action") or "completed"),
        auto_response=_optional_text(data.get("auto_response")),
        questions_answered=_decode_text_list(data.get("questions_answered")),
    )


def decode_response(raw: Any) -> ServerUpdate:
    """Normalize a start, decision or status response"""
    if not isinstance(raw, dict):
        return ServerUpdate(error="Response is not a JSON object")

    interrupt_raw = raw.get("interrupt_data")

    classification = decode_classification(raw.get("classification"))
    if classification is None and isinstance(interrupt_raw, dict):
        classification = _classification_from_interrupt(interrupt_raw)

    workflow_id = raw.get("workflow_id")
    raw_status = raw.get("status")

    return ServerUpdate(
        workflow_id=str(workflow_id) if workflow_id else None,
        status=decode_status(raw_status),
        raw_status=raw_status if isinstance(raw_status, str) else None,
        classification=classification,
        interrupt=decode_interrupt(interrupt_raw),
        result=decode_result(raw),
        error=_optional_text(raw.get("error")),
    )


def _classification_from_interrupt(interrupt_raw: dict) -> Optional[Classification]:
    """Continuation interrupts repeat the reclassified email inline"""
    category = _decode_category(interrupt_raw.get("classification"))
    if category is None:
        return None

    confidence = interrupt_raw.get("confidence")
    proposed_reply = _first_present(interrupt_raw, "proposed_reply", "auto_response", "proposed_auto_reply")

    return Classification(
        category=category,
        confidence=CONTINUATION_CONFIDENCE if confidence is None else _decode_confidence(confidence),
        reasoning=str(interrupt_raw.get("reasoning") or CONTINUATION_REASONING),
        proposed_reply=str(proposed_reply) if proposed_reply else None,
        clarifying_questions=_decode_text_list(interrupt_raw.get("clarifying_questions")),
    )


def _first_present(raw: dict, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _decode_category(value: Any) -> Optional[Category]:
    if not isinstance(value, str):
        return None
    return CATEGORY_ALIASES.get(value.strip().lower())


def _decode_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return min(max(confidence, 0.0), 1.0)


def _decode_text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None
