"""revu-core: Mutation coordination and polling logic for revu."""

from revu_core.attempts import AttemptSequencer, EditAttempt
from revu_core.cache import ResourceCache
from revu_core.concurrency import ConcurrencyGuard, ExternalResolution
from revu_core.coordinator import (
    MutationCoordinator,
    PendingConflict,
    PendingValidation,
    ResourceMutationState,
)
from revu_core.decisions import DecisionStateMachine
from revu_core.polling import PollPolicy, PollTimeoutError, poll
from revu_core.retry import is_transient_error, retry_transient
from revu_core.tasks import TaskFailedError, TaskRunner
from revu_core.telemetry import MutationTelemetry, PollTelemetry
from revu_core.validation_gate import ValidationGate, ValidationOutcome
from revu_core.version import VERSION

__version__ = "0.1.0"

__all__ = [
    "VERSION",
    "AttemptSequencer",
    "ConcurrencyGuard",
    "DecisionStateMachine",
    "EditAttempt",
    "ExternalResolution",
    "MutationCoordinator",
    "MutationTelemetry",
    "PendingConflict",
    "PendingValidation",
    "PollPolicy",
    "PollTelemetry",
    "PollTimeoutError",
    "ResourceCache",
    "ResourceMutationState",
    "TaskFailedError",
    "TaskRunner",
    "ValidationGate",
    "ValidationOutcome",
    "is_transient_error",
    "poll",
    "retry_transient",
]
