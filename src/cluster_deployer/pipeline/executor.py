"""Pipeline executor: walks the step graph until a terminal condition."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Set

from .context import DeploymentContext
from .graph import PipelineGraph
from .models import DeploymentState, RunOutcome, StepRecord

logger = logging.getLogger(__name__)


class PipelineExecutor:
    """
    Runs a :class:`PipelineGraph` against one :class:`DeploymentContext`.

    Steps run strictly one after another. After each step the executor
    looks only at the state the step left behind:

    - ``HasError`` stops the run as failed;
    - ``Success`` follows the success edge;
    - ``UnSuccessful`` / ``Done`` follow the failure edge;
    - anything without a matching edge ends the run successfully.

    A set ``context.cancel_event`` stops the run as failed before the next
    step starts.
    """

    def __init__(
        self,
        on_step_finished: Optional[Callable[[StepRecord, DeploymentContext], None]] = None,
    ) -> None:
        self.on_step_finished = on_step_finished

    def run(self, graph: PipelineGraph, start: str, context: DeploymentContext) -> RunOutcome:
        graph.validate(start)

        visited: List[str] = []
        seen: Set[str] = set()
        records: List[StepRecord] = []
        current: Optional[str] = start

        logger.info("Starting pipeline at '%s' (%d steps)", start, len(graph))

        while current is not None:
            if current in seen:
                # validate() rules this out; kept so a bad graph can never loop
                context.log_error(f"Step '{current}' was already executed in this run")
                return self._finish(False, context, visited, records)
            if context.cancel_event.is_set():
                context.log_error(f"Deployment cancelled before step '{current}'")
                logger.warning("⏹️ Pipeline cancelled before '%s'", current)
                return self._finish(False, context, visited, records)
            seen.add(current)
            visited.append(current)

            node = graph[current]
            record = StepRecord(
                step=current,
                state=DeploymentState.RUNNING,
                started_at=datetime.now().isoformat(),
            )
            context.state = DeploymentState.RUNNING
            logger.info("📍 Step %d: %s", len(visited), current)

            try:
                node.step.execute(context)
            except Exception as exc:
                context.log_error(f"Step '{current}' failed unexpectedly: ", exc)
                record.error = str(exc)

            state = context.state
            if state is DeploymentState.RUNNING:
                # the step never reported an outcome
                state = DeploymentState.UNKNOWN
                context.state = state

            record.state = state
            record.finished_at = datetime.now().isoformat()
            records.append(record)
            logger.info("   %s -> %s", current, state.value)
            if self.on_step_finished is not None:
                self.on_step_finished(record, context)

            if state.is_fatal:
                logger.error("❌ Pipeline stopped: step '%s' reported an error", current)
                return self._finish(False, context, visited, records)

            current = node.edge.next_for(state)
            if current is not None:
                logger.debug("   following edge %s -> %s", node.edge.step, current)

        return self._finish(True, context, visited, records)

    def _finish(
        self,
        success: bool,
        context: DeploymentContext,
        visited: List[str],
        records: List[StepRecord],
    ) -> RunOutcome:
        if success:
            logger.info("🎉 Pipeline finished after %d steps (%s)", len(visited), context.state.value)
        return RunOutcome(
            success=success,
            final_state=context.state,
            visited=list(visited),
            records=list(records),
        )
