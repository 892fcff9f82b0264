"""Main CLI entry point for the HITL email assistant"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional

from hitl_assistant.cli import ConsoleAdapter, run_session
from hitl_assistant.config.config_loader import load_config
from hitl_assistant.email_processor.msg_reader import load_email, read_emails_from_directory
from hitl_assistant.models.email import EmailContext
from hitl_assistant.models.workflow import WorkflowOutcome, WorkflowStatus
from hitl_assistant.transport.http_transport import HttpWorkflowTransport
from hitl_assistant.workflow.engine import WorkflowEngine


async def process_emails(
    engine: WorkflowEngine,
    adapter: ConsoleAdapter,
    emails: List[EmailContext],
    input_func: Callable[[str], str] = input,
) -> List[WorkflowOutcome]:
    """
    Start a workflow per email concurrently, then resolve each one in turn.

    Args:
        engine: Workflow engine
        adapter: Console adapter registered as the engine's listener
        emails: Emails to process
        input_func: Line reader for decisions

    Returns:
        Final outcome per email, in input order
    """
    started = await asyncio.gather(*(engine.start_workflow(email) for email in emails))

    outcomes = []
    for email, outcome in zip(emails, started):
        session = outcome.session
        if session is not None and session.status == WorkflowStatus.AWAITING_DECISION:
            if len(emails) > 1:
                adapter.output(f"\n📧 {email.subject} (from {email.sender})")
                adapter.show_classification(session)
            outcome = await run_session(engine, adapter, session.workflow_id, input_func)
        outcomes.append(outcome)

    return outcomes


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Usage:
        python -m hitl_assistant.main <email-or-directory> [--config PATH] [--check]
    """
    parser = argparse.ArgumentParser(description="Triage emails with human approval")
    parser.add_argument("path", nargs="?", help="Email file (.msg/.json) or directory of emails")
    parser.add_argument("--config", type=Path, default=None, help="Path to YAML configuration")
    parser.add_argument("--check", action="store_true", help="Only check backend health")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    logging.basicConfig(
        level=getattr(logging, config.logging.level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    adapter = ConsoleAdapter()
    transport = HttpWorkflowTransport(config.backend)
    engine = WorkflowEngine.from_config(transport, config, listener=adapter)

    if args.check:
        healthy = asyncio.run(engine.check_backend())
        status = "✅ healthy" if healthy else "❌ unreachable"
        print(f"Backend {config.backend.base_url}: {status}")
        return 0 if healthy else 1

    if not args.path:
        parser.error("path is required unless --check is given")

    input_path = Path(args.path)
    if not input_path.exists():
        print(f"Error: Input path does not exist: {input_path}")
        return 1

    try:
        if input_path.is_dir():
            emails = read_emails_from_directory(input_path)
        else:
            emails = [load_email(input_path)]
    except (OSError, ValueError) as e:
        print(f"Error: Could not read email: {e}")
        return 1

    if not emails:
        print(f"No .msg or .json emails found in {input_path}")
        return 1

    print(f"Processing {len(emails)} email(s) with backend {config.backend.base_url}")
    outcomes = asyncio.run(process_emails(engine, adapter, emails))

    completed = sum(
        1 for o in outcomes if o.session is not None and o.session.status.is_terminal
    )
    failed = sum(1 for o in outcomes if o.error is not None)
    print(f"\nDone: {completed} completed, {failed} with errors, {len(outcomes)} total")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
