"""Data models for the pipeline engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class DeploymentState(Enum):
    """Outcome a step leaves on the context"""
    UNKNOWN = "Unknown"
    RUNNING = "Running"
    SUCCESS = "Success"
    UNSUCCESSFUL = "UnSuccessful"   # branch to the failure edge
    HAS_ERROR = "HasError"          # fatal, stops the whole run
    DONE = "Done"                   # nothing left to do on this branch

    @property
    def is_fatal(self) -> bool:
        return self is DeploymentState.HAS_ERROR

    @property
    def takes_failure_edge(self) -> bool:
        return self in (DeploymentState.UNSUCCESSFUL, DeploymentState.DONE)


@dataclass(frozen=True)
class TransitionEdge:
    """Where to go after ``step`` succeeds or fails."""
    step: str
    on_success: Optional[str] = None
    on_failure: Optional[str] = None

    def next_for(self, state: DeploymentState) -> Optional[str]:
        if state is DeploymentState.SUCCESS:
            return self.on_success
        if state.takes_failure_edge:
            return self.on_failure
        return None


@dataclass
class StepRecord:
    """Execution record of one visited step"""
    step: str
    state: DeploymentState
    started_at: str
    finished_at: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "state": self.state.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "error": self.error,
        }


@dataclass
class RunOutcome:
    """Result handed back to the pipeline host."""
    success: bool
    final_state: DeploymentState
    visited: List[str] = field(default_factory=list)
    records: List[StepRecord] = field(default_factory=list)
    finished_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "final_state": self.final_state.value,
            "visited": list(self.visited),
            "steps": [record.to_dict() for record in self.records],
            "finished_at": self.finished_at,
        }
