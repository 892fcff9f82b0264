"""
HITL workflow decision engine.

Drives the approval protocol with the classification backend:

    idle -> starting -> awaiting_decision <-> submitting -> completed | error | already_completed

A submitted decision may lead to a further interrupt (continuation). When the
backend has not produced it yet, the engine polls the status endpoint a bounded
number of times before giving up with a continuation timeout.

Errors never cross into the presentation layer as exceptions: every entry point
returns a WorkflowOutcome and reports failures through WorkflowListener.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set, Union

from hitl_assistant.models.configs import AssistantConfig
from hitl_assistant.models.email import EmailContext
from hitl_assistant.models.workflow import (
    DecisionToken,
    ErrorKind,
    ServerUpdate,
    WorkflowError,
    WorkflowOutcome,
    WorkflowSession,
    WorkflowStatus,
)
from hitl_assistant.transport.base import (
    TransportError,
    WireDecision,
    WorkflowAlreadyCompletedError,
    WorkflowTransport,
)
from hitl_assistant.workflow import codec
from hitl_assistant.workflow.codec import Decision, DecisionEncodingError
from hitl_assistant.workflow.session_store import SessionStore, UpsertResult

logger = logging.getLogger(__name__)

DEFAULT_POLL_ATTEMPTS = 5
DEFAULT_POLL_INTERVAL = 1.0

# Offered in place of an interrupt the client does not recognize
FALLBACK_DECISIONS = [DecisionToken.APPROVE_IGNORE.value, DecisionToken.CONVERT_TO_IGNORE.value]

RawDecision = Union[Decision, str, dict]


class WorkflowListener:
    """
    Presentation adapter callbacks. Subclass and override what you need.

    Called synchronously from the engine; exceptions raised here are logged and
    do not affect workflow state.
    """

    def on_classification_available(self, session: WorkflowSession) -> None:
        pass

    def on_decision_required(self, session: WorkflowSession) -> None:
        pass

    def on_workflow_completed(self, session: WorkflowSession) -> None:
        pass

    def on_workflow_error(self, session: Optional[WorkflowSession], error: WorkflowError) -> None:
        pass


class WorkflowEngine:
    """
    Orchestrates HITL workflows for any number of emails.

    Each workflow id allows at most one decision submission in flight; distinct
    workflow ids progress independently.
    """

    def __init__(
        self,
        transport: WorkflowTransport,
        store: Optional[SessionStore] = None,
        listener: Optional[WorkflowListener] = None,
        max_poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1")
        self.transport = transport
        self.store = store if store is not None else SessionStore()
        self.listener = listener if listener is not None else WorkflowListener()
        self.max_poll_attempts = max_poll_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._in_flight: Set[str] = set()

    @classmethod
    def from_config(
        cls,
        transport: WorkflowTransport,
        config: AssistantConfig,
        listener: Optional[WorkflowListener] = None,
    ) -> "WorkflowEngine":
        return cls(
            transport,
            listener=listener,
            max_poll_attempts=config.continuation.max_attempts,
            poll_interval=config.continuation.interval_seconds,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def start_workflow(self, email: EmailContext) -> WorkflowOutcome:
        """
        Start a workflow for an email.

        Args:
            email: Email to classify

        Returns:
            WorkflowOutcome with the new session, or a transport/server error
            and no session when the backend did not assign a workflow id
        """
        logger.info("Starting workflow for email: %s", email.subject)
        try:
            raw = await self.transport.start_workflow(email)
        except TransportError as e:
            return self._reject(None, ErrorKind.TRANSPORT_FAILURE, str(e), retryable=e.retryable)

        update = codec.decode_response(raw)
        if not update.workflow_id:
            return self._reject(
                None, ErrorKind.SERVER_ERROR, update.error or "Backend returned no workflow id"
            )

        logger.info(
            "Workflow %s started with status %s", update.workflow_id, update.raw_status
        )
        return await self._apply_update(update.workflow_id, update, after_decision=False)

    async def submit_decision(self, workflow_id: str, raw_decision: RawDecision) -> WorkflowOutcome:
        """
        Submit a user decision for a workflow awaiting one.

        edit_reply and cancel_edit are resolved locally. Everything else is encoded
        and sent; a continuation without interrupt data starts the poll phase.

        Args:
            workflow_id: Workflow identifier
            raw_decision: Decision, "token" / "token:text" string or envelope dict

        Returns:
            WorkflowOutcome with the session after the call and any error
        """
        session = self.store.get(workflow_id)
        if session is None:
            return self._reject(None, ErrorKind.INVALID_STATE, f"Unknown workflow {workflow_id}")

        if workflow_id in self._in_flight:
            return self._reject(
                session,
                ErrorKind.OPERATION_IN_PROGRESS,
                f"A decision for workflow {workflow_id} is already being processed",
            )

        if session.status != WorkflowStatus.AWAITING_DECISION:
            return self._reject(
                session,
                ErrorKind.INVALID_STATE,
                f"Workflow {workflow_id} is {session.status.value}, not awaiting a decision",
            )

        try:
            decision = codec.parse_decision(raw_decision)
        except DecisionEncodingError as e:
            return self._reject(session, ErrorKind.INVALID_DECISION, str(e))

        if session.error is not None and session.error.kind == ErrorKind.NO_ACTIONABLE_DECISION:
            if decision.token not in FALLBACK_DECISIONS:
                return self._reject(
                    session,
                    ErrorKind.INVALID_DECISION,
                    f"Only {', '.join(FALLBACK_DECISIONS)} can resolve an unrecognized step",
                )

        if decision.token == DecisionToken.EDIT_REPLY.value:
            return self._begin_edit(session)
        if decision.token == DecisionToken.CANCEL_EDIT.value:
            return self._cancel_edit(session)

        if session.editing:
            if decision.token != DecisionToken.SEND_EDITED.value:
                return self._reject(
                    session,
                    ErrorKind.INVALID_STATE,
                    "Send or cancel the edited reply before choosing another decision",
                )
            if not decision.payload:
                decision = Decision(token=decision.token, payload=session.edit_buffer)

        try:
            wire = codec.encode_decision(decision)
        except DecisionEncodingError as e:
            return self._reject(session, ErrorKind.INVALID_DECISION, str(e))

        # Claimed before the first await so a second submission sees it
        self._in_flight.add(workflow_id)
        try:
            return await self._send_decision(workflow_id, wire)
        finally:
            self._in_flight.discard(workflow_id)

    def get_session(self, workflow_id: str) -> Optional[WorkflowSession]:
        return self.store.get(workflow_id)

    def is_submitting(self, workflow_id: str) -> bool:
        return workflow_id in self._in_flight

    def forget(self, workflow_id: str) -> bool:
        """
        Drop a workflow the presentation layer no longer shows.

        A continuation poll in progress for it stops before its next request, and
        a response still in transit for it is discarded without notifying the
        listener.
        """
        return self.store.remove(workflow_id)

    async def check_backend(self) -> bool:
        return await self.transport.health_check()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _send_decision(self, workflow_id: str, wire: WireDecision) -> WorkflowOutcome:
        try:
            raw = await self.transport.submit_decision(workflow_id, wire)
        except WorkflowAlreadyCompletedError as e:
            if self._forgotten(workflow_id):
                return WorkflowOutcome()
            return self._mark_already_completed(workflow_id, str(e))
        except TransportError as e:
            if self._forgotten(workflow_id):
                return WorkflowOutcome()
            # Session is left exactly as it was before the call
            return self._reject(
                self.store.get(workflow_id),
                ErrorKind.TRANSPORT_FAILURE,
                str(e),
                retryable=e.retryable,
            )

        if self._forgotten(workflow_id):
            return WorkflowOutcome()

        update = codec.decode_response(raw)
        return await self._apply_update(workflow_id, update, after_decision=True)

    async def _apply_update(
        self, workflow_id: str, update: ServerUpdate, after_decision: bool
    ) -> WorkflowOutcome:
        status = update.status

        if status == WorkflowStatus.COMPLETED:
            return self._complete(workflow_id, update)

        if status == WorkflowStatus.ALREADY_COMPLETED:
            if after_decision:
                return self._mark_already_completed(
                    workflow_id, update.error or "Workflow already completed", update
                )
            return self._record_prior_completion(workflow_id, update)

        if status in (WorkflowStatus.AWAITING_DECISION, WorkflowStatus.PROCESSING):
            if update.interrupt is not None:
                return self._present_interrupt(workflow_id, update)

            # Next interrupt is still being computed
            fields = dict(
                status=WorkflowStatus.PROCESSING,
                interrupt=None,
                editing=False,
                edit_buffer=None,
                error=None,
            )
            if update.classification is not None:
                fields["classification"] = update.classification
            stored = self.store.upsert(workflow_id, **fields)
            if stored.conflict:
                return self._stale(stored)
            if update.classification is not None:
                self._emit("on_classification_available", stored.session)
            return await self._await_continuation(workflow_id)

        message = update.error or f"Unrecognized workflow status: {update.raw_status!r}"
        return self._fail_session(workflow_id, ErrorKind.SERVER_ERROR, message)

    async def _await_continuation(self, workflow_id: str) -> WorkflowOutcome:
        """Poll for the next interrupt after a decision, bounded by max_poll_attempts"""
        logger.info("Workflow %s continues, polling for next step", workflow_id)

        for attempt in range(1, self.max_poll_attempts + 1):
            await self._sleep(self.poll_interval)

            if self._forgotten(workflow_id):
                return WorkflowOutcome()

            try:
                raw = await self.transport.poll_status(workflow_id)
            except TransportError as e:
                logger.warning("Polling attempt %d for %s failed: %s", attempt, workflow_id, e)
                continue

            if self._forgotten(workflow_id):
                return WorkflowOutcome()

            update = codec.decode_response(raw)
            status = update.status

            if status == WorkflowStatus.COMPLETED:
                return self._complete(workflow_id, update)
            if status == WorkflowStatus.AWAITING_DECISION and update.interrupt is not None:
                return self._present_interrupt(workflow_id, update)
            if status == WorkflowStatus.ALREADY_COMPLETED:
                return self._mark_already_completed(
                    workflow_id, update.error or "Workflow already completed", update
                )
            if status == WorkflowStatus.ERROR:
                return self._fail_session(
                    workflow_id,
                    ErrorKind.SERVER_ERROR,
                    update.error or "Workflow execution failed",
                )

            logger.debug(
                "Polling attempt %d for %s: status %s", attempt, workflow_id, update.raw_status
            )

        return self._fail_session(
            workflow_id,
            ErrorKind.CONTINUATION_TIMEOUT,
            f"Failed to get next workflow step after {self.max_poll_attempts} attempts",
        )

    def _present_interrupt(self, workflow_id: str, update: ServerUpdate) -> WorkflowOutcome:
        interrupt = update.interrupt

        error = None
        if not interrupt.is_actionable:
            error = WorkflowError(
                kind=ErrorKind.NO_ACTIONABLE_DECISION,
                message=interrupt.message or "No actionable response",
            )
            interrupt = interrupt.model_copy(
                update={"available_decisions": list(FALLBACK_DECISIONS)}
            )

        fields = dict(
            status=WorkflowStatus.AWAITING_DECISION,
            interrupt=interrupt,
            editing=False,
            edit_buffer=None,
            error=error,
        )
        if update.classification is not None:
            fields["classification"] = update.classification

        stored = self.store.upsert(workflow_id, **fields)
        if stored.conflict:
            return self._stale(stored)

        session = stored.session
        if session.classification is not None:
            self._emit("on_classification_available", session)

        if error is not None:
            logger.warning("Workflow %s has no actionable decision: %s", workflow_id, error.message)
            self._emit("on_workflow_error", session, error)
        self._emit("on_decision_required", session)
        return WorkflowOutcome(session=session, error=error)

    def _complete(self, workflow_id: str, update: ServerUpdate) -> WorkflowOutcome:
        fields = dict(status=WorkflowStatus.COMPLETED, result=update.result, error=None)
        if update.classification is not None:
            fields["classification"] = update.classification

        stored = self.store.upsert(workflow_id, **fields)
        if stored.conflict:
            return self._stale(stored)

        session = stored.session
        logger.info("Workflow %s completed: %s", workflow_id, session.result.final_action)
        self._emit("on_workflow_completed", session)
        return WorkflowOutcome(session=session)

    def _record_prior_completion(self, workflow_id: str, update: ServerUpdate) -> WorkflowOutcome:
        """Email was processed in an earlier session; not an error"""
        fields = dict(status=WorkflowStatus.ALREADY_COMPLETED, interrupt=update.interrupt, error=None)
        if update.classification is not None:
            fields["classification"] = update.classification

        session = self.store.upsert(workflow_id, **fields).session
        logger.info("Workflow %s was already completed", workflow_id)
        self._emit("on_workflow_completed", session)
        return WorkflowOutcome(session=session)

    def _mark_already_completed(
        self, workflow_id: str, message: str, update: Optional[ServerUpdate] = None
    ) -> WorkflowOutcome:
        """Another client finished the workflow first"""
        error = WorkflowError(kind=ErrorKind.ALREADY_COMPLETED, message=message, retryable=False)
        interrupt = update.interrupt if update is not None else None

        stored = self.store.upsert(
            workflow_id,
            status=WorkflowStatus.ALREADY_COMPLETED,
            interrupt=interrupt,
            editing=False,
            edit_buffer=None,
            error=error,
        )
        if stored.conflict:
            return self._stale(stored)

        session = stored.session
        logger.info("Workflow %s already completed: %s", workflow_id, message)
        self._emit("on_workflow_error", session, error)
        return WorkflowOutcome(session=session, error=error)

    def _fail_session(self, workflow_id: str, kind: ErrorKind, message: str) -> WorkflowOutcome:
        error = WorkflowError(kind=kind, message=message, retryable=False)
        stored = self.store.upsert(
            workflow_id,
            status=WorkflowStatus.ERROR,
            interrupt=None,
            editing=False,
            edit_buffer=None,
            error=error,
        )
        if stored.conflict:
            return self._stale(stored)

        logger.error("Workflow %s failed (%s): %s", workflow_id, kind.value, message)
        self._emit("on_workflow_error", stored.session, error)
        return WorkflowOutcome(session=stored.session, error=error)

    def _begin_edit(self, session: WorkflowSession) -> WorkflowOutcome:
        if session.editing:
            return WorkflowOutcome(session=session)

        proposed = session.classification.proposed_reply if session.classification else None
        updated = self.store.upsert(
            session.workflow_id, editing=True, edit_buffer=proposed or ""
        ).session
        self._emit("on_decision_required", updated)
        return WorkflowOutcome(session=updated)

    def _cancel_edit(self, session: WorkflowSession) -> WorkflowOutcome:
        if not session.editing:
            return WorkflowOutcome(session=session)

        updated = self.store.upsert(session.workflow_id, editing=False, edit_buffer=None).session
        self._emit("on_decision_required", updated)
        return WorkflowOutcome(session=updated)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reject(
        self,
        session: Optional[WorkflowSession],
        kind: ErrorKind,
        message: str,
        retryable: bool = False,
    ) -> WorkflowOutcome:
        """Report an error without touching the stored session"""
        error = WorkflowError(kind=kind, message=message, retryable=retryable)
        logger.warning("%s: %s", kind.value, message)
        self._emit("on_workflow_error", session, error)
        return WorkflowOutcome(session=session, error=error)

    def _forgotten(self, workflow_id: str) -> bool:
        if workflow_id in self.store:
            return False
        logger.info("Workflow %s was forgotten, discarding its progress", workflow_id)
        return True

    @staticmethod
    def _stale(stored: UpsertResult) -> WorkflowOutcome:
        logger.warning(
            "Discarded stale response for %s workflow %s",
            stored.session.status.value,
            stored.session.workflow_id,
        )
        return WorkflowOutcome(session=stored.session)

    def _emit(self, event: str, *args) -> None:
        try:
            getattr(self.listener, event)(*args)
        except Exception:
            logger.exception("Listener %s failed", event)
