"""Backend transports for the workflow engine"""

from hitl_assistant.transport.base import (
    TransportError,
    WireDecision,
    WorkflowAlreadyCompletedError,
    WorkflowTransport,
)
from hitl_assistant.transport.http_transport import HttpWorkflowTransport

__all__ = [
    "HttpWorkflowTransport",
    "TransportError",
    "WireDecision",
    "WorkflowAlreadyCompletedError",
    "WorkflowTransport",
]
