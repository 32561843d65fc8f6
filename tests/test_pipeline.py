import unittest
from typing import List

from cluster_deployer.pipeline import (
    DeploymentContext,
    DeploymentInputs,
    DeploymentState,
    GraphError,
    PipelineExecutor,
    PipelineGraph,
    Step,
    TransitionEdge,
)
from cluster_deployer.ports import OrchestratorType
from cluster_deployer.utils.logging import LogSink


class ScriptedStep(Step):
    """Leaves a fixed state behind and records that it ran."""

    def __init__(self, key: str, state: DeploymentState, calls: List[str]) -> None:
        self.key = key
        self.state = state
        self.calls = calls

    def execute(self, context: DeploymentContext) -> None:
        self.calls.append(self.key)
        if self.state is DeploymentState.HAS_ERROR:
            context.log_error(f"{self.key} failed")
        elif self.state is not DeploymentState.RUNNING:
            context.state = self.state


class ExplodingStep(Step):
    key = "explode"

    def execute(self, context: DeploymentContext) -> None:
        raise RuntimeError("boom")


def make_context() -> DeploymentContext:
    inputs = DeploymentInputs(
        resource_group="rg",
        cluster_name="cluster",
        orchestrator=OrchestratorType.DCOS,
        config_file_patterns="*.json",
    )
    return DeploymentContext(inputs, sink=LogSink("tests.pipeline"))


class TransitionEdgeTests(unittest.TestCase):
    def test_next_for(self) -> None:
        edge = TransitionEdge("a", on_success="b", on_failure="c")
        self.assertEqual(edge.next_for(DeploymentState.SUCCESS), "b")
        self.assertEqual(edge.next_for(DeploymentState.UNSUCCESSFUL), "c")
        self.assertEqual(edge.next_for(DeploymentState.DONE), "c")
        self.assertIsNone(edge.next_for(DeploymentState.UNKNOWN))
        self.assertIsNone(edge.next_for(DeploymentState.HAS_ERROR))


class PipelineGraphTests(unittest.TestCase):
    def test_duplicate_key(self) -> None:
        graph = PipelineGraph().add(ScriptedStep("a", DeploymentState.SUCCESS, []))
        with self.assertRaises(GraphError):
            graph.add(ScriptedStep("a", DeploymentState.SUCCESS, []))

    def test_dangling_edge(self) -> None:
        graph = PipelineGraph().add(ScriptedStep("a", DeploymentState.SUCCESS, []), on_success="missing")
        with self.assertRaises(GraphError):
            graph.validate()

    def test_unknown_start(self) -> None:
        graph = PipelineGraph().add(ScriptedStep("a", DeploymentState.SUCCESS, []))
        with self.assertRaises(GraphError):
            graph.validate("b")

    def test_cycle_is_rejected(self) -> None:
        calls: List[str] = []
        graph = (
            PipelineGraph()
            .add(ScriptedStep("a", DeploymentState.SUCCESS, calls), on_success="b")
            .add(ScriptedStep("b", DeploymentState.SUCCESS, calls), on_success="a")
        )
        with self.assertRaises(GraphError) as ctx:
            PipelineExecutor().run(graph, "a", make_context())
        self.assertIn("cycle", str(ctx.exception))
        self.assertEqual(calls, [])


class PipelineExecutorTests(unittest.TestCase):
    def _graph(self, a_state, b_state=DeploymentState.SUCCESS, c_state=DeploymentState.SUCCESS):
        calls: List[str] = []
        graph = (
            PipelineGraph()
            .add(ScriptedStep("a", a_state, calls), on_success="b", on_failure="c")
            .add(ScriptedStep("b", b_state, calls))
            .add(ScriptedStep("c", c_state, calls))
        )
        return graph, calls

    def test_success_edge(self) -> None:
        graph, calls = self._graph(DeploymentState.SUCCESS)
        outcome = PipelineExecutor().run(graph, "a", make_context())
        self.assertTrue(outcome.success)
        self.assertEqual(calls, ["a", "b"])
        self.assertEqual(outcome.visited, ["a", "b"])
        self.assertEqual(outcome.final_state, DeploymentState.SUCCESS)

    def test_failure_edge(self) -> None:
        graph, calls = self._graph(DeploymentState.UNSUCCESSFUL)
        outcome = PipelineExecutor().run(graph, "a", make_context())
        self.assertTrue(outcome.success)
        self.assertEqual(calls, ["a", "c"])

    def test_done_takes_failure_edge(self) -> None:
        calls: List[str] = []
        graph = PipelineGraph().add(ScriptedStep("a", DeploymentState.DONE, calls), on_success="b").add(
            ScriptedStep("b", DeploymentState.SUCCESS, calls)
        )
        outcome = PipelineExecutor().run(graph, "a", make_context())
        self.assertTrue(outcome.success)
        self.assertEqual(calls, ["a"])
        self.assertEqual(outcome.final_state, DeploymentState.DONE)

    def test_error_stops_the_run(self) -> None:
        graph, calls = self._graph(DeploymentState.HAS_ERROR)
        context = make_context()
        outcome = PipelineExecutor().run(graph, "a", context)
        self.assertFalse(outcome.success)
        self.assertEqual(calls, ["a"])
        self.assertEqual(outcome.final_state, DeploymentState.HAS_ERROR)
        self.assertIn("ERROR: a failed", context.sink.lines)

    def test_error_in_second_step(self) -> None:
        graph, calls = self._graph(DeploymentState.SUCCESS, b_state=DeploymentState.HAS_ERROR)
        outcome = PipelineExecutor().run(graph, "a", make_context())
        self.assertFalse(outcome.success)
        self.assertEqual(calls, ["a", "b"])

    def test_step_without_outcome_is_unknown(self) -> None:
        graph, calls = self._graph(DeploymentState.RUNNING)
        outcome = PipelineExecutor().run(graph, "a", make_context())
        self.assertTrue(outcome.success)
        self.assertEqual(calls, ["a"])
        self.assertEqual(outcome.final_state, DeploymentState.UNKNOWN)

    def test_exception_becomes_error(self) -> None:
        calls: List[str] = []
        graph = PipelineGraph().add(ExplodingStep(), on_success="b").add(
            ScriptedStep("b", DeploymentState.SUCCESS, calls)
        )
        context = make_context()
        outcome = PipelineExecutor().run(graph, "explode", context)
        self.assertFalse(outcome.success)
        self.assertEqual(calls, [])
        self.assertEqual(outcome.records[0].error, "boom")
        self.assertTrue(context.has_error)

    def test_cancel_stops_before_next_step(self) -> None:
        calls: List[str] = []
        context = make_context()

        class CancellingStep(ScriptedStep):
            def execute(self, context: DeploymentContext) -> None:
                super().execute(context)
                context.cancel()

        graph = (
            PipelineGraph()
            .add(CancellingStep("a", DeploymentState.SUCCESS, calls), on_success="b")
            .add(ScriptedStep("b", DeploymentState.SUCCESS, calls))
        )
        outcome = PipelineExecutor().run(graph, "a", context)
        self.assertFalse(outcome.success)
        self.assertEqual(calls, ["a"])
        self.assertEqual(outcome.final_state, DeploymentState.HAS_ERROR)
        self.assertIn("cancelled", context.sink.lines[-1])

    def test_step_finished_callback(self) -> None:
        seen = []
        graph, _ = self._graph(DeploymentState.SUCCESS)
        PipelineExecutor(on_step_finished=lambda record, ctx: seen.append((record.step, record.state))).run(
            graph, "a", make_context()
        )
        self.assertEqual(seen, [("a", DeploymentState.SUCCESS), ("b", DeploymentState.SUCCESS)])

    def test_outcome_to_dict(self) -> None:
        graph, _ = self._graph(DeploymentState.SUCCESS)
        data = PipelineExecutor().run(graph, "a", make_context()).to_dict()
        self.assertEqual(data["final_state"], "Success")
        self.assertEqual([s["step"] for s in data["steps"]], ["a", "b"])


if __name__ == "__main__":
    unittest.main()
