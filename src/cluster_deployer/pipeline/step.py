"""Base class of pipeline steps."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import DeploymentContext


class Step(ABC):
    """One unit of deployment work.

    Collaborators are passed to the constructor by whoever builds the
    pipeline; ``execute`` only receives the run's context and must set
    ``context.state`` before returning.
    """

    #: Stable identifier of the step inside a pipeline graph.
    key: str = ""

    @abstractmethod
    def execute(self, context: "DeploymentContext") -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r})"
