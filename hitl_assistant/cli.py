"""Console presentation adapter for the HITL workflow engine"""

import asyncio
from typing import Callable, List, Optional

from hitl_assistant.models.workflow import (
    Category,
    DecisionToken,
    ErrorKind,
    WorkflowError,
    WorkflowOutcome,
    WorkflowSession,
    WorkflowStatus,
)
from hitl_assistant.workflow.codec import Decision
from hitl_assistant.workflow.engine import WorkflowEngine, WorkflowListener

DECISION_LABELS = {
    DecisionToken.APPROVE_SEND.value: ("✅", "Send reply"),
    DecisionToken.APPROVE_IGNORE.value: ("✅", "Approve ignore"),
    DecisionToken.EDIT_REPLY.value: ("✏️", "Edit reply"),
    DecisionToken.SEND_EDITED.value: ("📤", "Send edited reply"),
    DecisionToken.CANCEL_EDIT.value: ("❌", "Cancel edit"),
    DecisionToken.PROCESS_INSTEAD.value: ("🔄", "Process instead"),
    DecisionToken.CONVERT_TO_IGNORE.value: ("🚫", "Convert to ignore"),
    DecisionToken.PROVIDE_ANSWERS.value: ("💡", "Provide answers"),
    DecisionToken.CUSTOM_REPLY.value: ("✏️", "Custom reply"),
}

CATEGORY_LABELS = {
    Category.IGNORE: "🚫 Ignore",
    Category.AUTO_REPLY: "📧 Auto-reply",
    Category.INFORMATION_NEEDED: "❓ Information needed",
}

# Decisions that ask for free text before submitting
TEXT_PROMPTS = {
    DecisionToken.CUSTOM_REPLY.value: "Your reply: ",
    DecisionToken.PROVIDE_ANSWERS.value: "Your answers: ",
    DecisionToken.SEND_EDITED.value: "Edited reply (leave blank to keep it): ",
}

EDIT_ONLY_DECISIONS = {DecisionToken.SEND_EDITED.value, DecisionToken.CANCEL_EDIT.value}

QUIT_COMMANDS = {"q", "quit", "exit"}


def format_decision(token: str) -> str:
    """Icon and label for a decision token"""
    if token in DECISION_LABELS:
        icon, label = DECISION_LABELS[token]
        return f"{icon} {label}"
    return "❓ " + token.replace("_", " ").title()


def menu_decisions(session: WorkflowSession) -> List[str]:
    """
    Decisions to offer for a session.

    While the reply is being edited only send_edited and cancel_edit apply;
    otherwise those two are hidden.
    """
    if session.editing:
        return [DecisionToken.SEND_EDITED.value, DecisionToken.CANCEL_EDIT.value]
    available = session.interrupt.available_decisions if session.interrupt else []
    return [d for d in available if d not in EDIT_ONLY_DECISIONS]


class ConsoleAdapter(WorkflowListener):
    """Prints workflow events to the terminal"""

    def __init__(self, output: Callable[[str], None] = print):
        self.output = output

    def on_classification_available(self, session: WorkflowSession) -> None:
        self.show_classification(session)

    def on_decision_required(self, session: WorkflowSession) -> None:
        if session.editing:
            self.output("\n✏️ Editing reply. Current text:")
            for line in (session.edit_buffer or "").splitlines() or [""]:
                self.output(f"    {line}")
            return
        self.output("\n⏸️ Human decision required")

    def on_workflow_completed(self, session: WorkflowSession) -> None:
        if session.status == WorkflowStatus.ALREADY_COMPLETED:
            self.show_already_completed(session)
            return

        result = session.result
        self.output(f"\n✅ Workflow completed: {result.final_action if result else 'completed'}")
        if result and result.auto_response:
            self.output("  📧 Reply sent:")
            for line in result.auto_response.splitlines():
                self.output(f"    {line}")
        if result and result.questions_answered:
            self.output("  💡 Questions answered:")
            for question in result.questions_answered:
                self.output(f"    - {question}")

    def on_workflow_error(self, session: Optional[WorkflowSession], error: WorkflowError) -> None:
        if error.kind == ErrorKind.ALREADY_COMPLETED:
            self.output(
                f"\nℹ️ Workflow Already Completed\n  {error.message}\n"
                "  This email has already been processed."
            )
            return
        if error.kind == ErrorKind.NO_ACTIONABLE_DECISION:
            self.output(f"\n⚠️ No actionable decision: {error.message}")
            if session is not None and session.interrupt is not None:
                fallbacks = ", ".join(
                    format_decision(token) for token in session.interrupt.available_decisions
                )
                self.output(f"  Treat as no response needed? Options: {fallbacks}")
            return

        retry_hint = " (you can try again)" if error.retryable else ""
        self.output(f"\n❌ Error [{error.kind.value}]: {error.message}{retry_hint}")

    def show_classification(self, session: WorkflowSession) -> None:
        classification = session.classification
        if classification is None:
            return

        self.output("\n" + "=" * 70)
        self.output(f"📊 Classification: {CATEGORY_LABELS[classification.category]}")
        self.output(f"  Confidence: {classification.confidence:.0%}")
        if classification.reasoning:
            self.output(f"  💡 Reasoning: {classification.reasoning}")
        if classification.proposed_reply:
            self.output("  📧 Proposed reply:")
            for line in classification.proposed_reply.splitlines():
                self.output(f"    {line}")
        if classification.clarifying_questions:
            self.output("  ❓ Clarifying questions:")
            for i, question in enumerate(classification.clarifying_questions, 1):
                self.output(f"    {i}. {question}")
        self.output("=" * 70)

    def show_already_completed(self, session: WorkflowSession) -> None:
        self.output("\nℹ️ Email already processed")
        interrupt = session.interrupt
        if interrupt is None:
            return
        if interrupt.completion_date:
            self.output(f"  Completed: {interrupt.completion_date}")
        if interrupt.final_classification:
            self.output(f"  Classification: {interrupt.final_classification}")
        if interrupt.final_reply:
            self.output(f"  Final reply: {interrupt.final_reply}")

    def show_menu(self, choices: List[str]) -> None:
        for i, token in enumerate(choices, 1):
            self.output(f"  [{i}] {format_decision(token)}")


async def ask(prompt: str, input_func: Callable[[str], str] = input) -> str:
    """Read a line without blocking the event loop"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input_func, prompt)


async def run_session(
    engine: WorkflowEngine,
    adapter: ConsoleAdapter,
    workflow_id: str,
    input_func: Callable[[str], str] = input,
) -> WorkflowOutcome:
    """
    Resolve one workflow interactively until it stops awaiting a decision.

    Args:
        engine: Engine the workflow was started on
        adapter: Console adapter used for menus
        workflow_id: Workflow to resolve
        input_func: Line reader, ``input`` by default

    Returns:
        Outcome of the last engine call
    """
    outcome = WorkflowOutcome(session=engine.get_session(workflow_id))

    while True:
        session = engine.get_session(workflow_id)
        if session is None or session.status != WorkflowStatus.AWAITING_DECISION:
            return outcome

        choices = menu_decisions(session)
        if not choices:
            return outcome

        adapter.show_menu(choices)
        answer = (await ask(f"Choose 1-{len(choices)} (q to skip): ", input_func)).strip()

        if answer.lower() in QUIT_COMMANDS:
            adapter.output("⏭️ Skipped")
            return outcome

        if not answer.isdigit() or not 1 <= int(answer) <= len(choices):
            adapter.output(f"Invalid choice: {answer!r}")
            continue

        token = choices[int(answer) - 1]
        payload = None
        if token in TEXT_PROMPTS:
            payload = (await ask(TEXT_PROMPTS[token], input_func)).strip() or None

        adapter.output(f"\n⏳ Processing decision: {format_decision(token)}")
        outcome = await engine.submit_decision(workflow_id, Decision(token=token, payload=payload))
