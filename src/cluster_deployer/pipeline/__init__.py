"""Step pipeline engine.

- PipelineGraph: steps keyed by stable names with success/failure edges
- PipelineExecutor: walks the graph, branching on each step's outcome
- DeploymentContext: state shared by the steps of one run
"""

from .models import DeploymentState, RunOutcome, StepRecord, TransitionEdge
from .context import DeploymentContext, DeploymentInputs, DeploymentOutputs
from .step import Step
from .graph import GraphError, PipelineGraph
from .executor import PipelineExecutor

__all__ = [
    "DeploymentState",
    "RunOutcome",
    "StepRecord",
    "TransitionEdge",
    "DeploymentContext",
    "DeploymentInputs",
    "DeploymentOutputs",
    "Step",
    "GraphError",
    "PipelineGraph",
    "PipelineExecutor",
]
