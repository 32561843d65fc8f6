"""Gate the deployment on the result of the upstream build."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from ..pipeline.context import DeploymentContext
from ..pipeline.models import DeploymentState
from ..pipeline.step import Step
from . import keys

# Build results, best first
BUILD_RESULTS = ("SUCCESS", "UNSTABLE", "FAILURE", "NOT_BUILT", "ABORTED")


class RunOn(str, Enum):
    """The build results on which the deployment should proceed."""
    SUCCESS = "Success"
    SUCCESS_OR_UNSTABLE = "SuccessOrUnstable"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "RunOn":
        if value and value.strip().lower() == cls.SUCCESS_OR_UNSTABLE.value.lower():
            return cls.SUCCESS_OR_UNSTABLE
        return cls.SUCCESS

    def should_run_on(self, result: Optional[str]) -> bool:
        if result is None:
            # no build result (e.g. a standalone run), nothing to check
            return True
        normalized = result.strip().upper()
        if self is RunOn.SUCCESS:
            return normalized == "SUCCESS"
        return normalized in ("SUCCESS", "UNSTABLE")


class CheckBuildResultStep(Step):
    """Continue with ``Success`` or stop the branch with ``Done``."""

    key = keys.CHECK_BUILD

    def __init__(self, run_on: RunOn = RunOn.SUCCESS) -> None:
        self.run_on = run_on

    def execute(self, context: DeploymentContext) -> None:
        result = context.inputs.build_result
        if result is not None and result.strip().upper() not in BUILD_RESULTS:
            context.log_error(f"Unknown build result '{result}'")
            return

        if self.run_on.should_run_on(result):
            context.log_status(f"Build result is {result or 'not set'}, continuing with the deployment")
            context.state = DeploymentState.SUCCESS
        else:
            context.log_status(f"Build result is {result}, skipping the deployment ({self.run_on.value} required)")
            context.state = DeploymentState.DONE
