"""Transport interface between the workflow engine and the classification backend"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from hitl_assistant.models.email import EmailContext

WireDecision = Union[str, dict]


class TransportError(Exception):
    """Request could not be completed (network failure, timeout, non-2xx response)"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
        self.retryable = retryable


class WorkflowAlreadyCompletedError(Exception):
    """The backend refused a decision because the workflow was finished elsewhere"""

    def __init__(self, message: str = "Workflow already completed", details: Any = None):
        super().__init__(message)
        self.details = details


class WorkflowTransport(ABC):
    """
    Request/response and status-poll calls to the backend.

    Responses are returned as raw JSON mappings; normalization is the codec's job.
    """

    @abstractmethod
    async def start_workflow(self, email: EmailContext) -> dict:
        """Start a workflow for an email"""

    @abstractmethod
    async def submit_decision(self, workflow_id: str, decision: WireDecision) -> dict:
        """
        Submit an encoded decision.

        Raises:
            WorkflowAlreadyCompletedError: If the workflow is already finished
            TransportError: On any other failure
        """

    @abstractmethod
    async def poll_status(self, workflow_id: str) -> dict:
        """Fetch workflow status without triggering re-execution"""

    async def health_check(self) -> bool:
        """Whether the backend is reachable"""
        return True
