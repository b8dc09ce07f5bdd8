"""Exception types raised across neuron_core."""

from __future__ import annotations


class NeuronError(Exception):
    """Base class for all neuron errors."""


class DeliveryError(NeuronError):
    """A commit or comment call against the code host failed.

    The pipeline does not retry these; they are logged and recorded in the run
    event log by the caller.
    """

    def __init__(self, action: str, target: str, cause: Exception):
        self.action = action
        self.target = target
        self.cause = cause
        super().__init__(f"{action} failed for {target}: {cause}")


class WorkspaceError(NeuronError):
    """The isolated workspace could not be prepared (e.g. clone failed)."""
