"""
Tests for domain-based task routing.
"""

from discubot.models.db import FlowOutput
from discubot.models.parsed import DetectedTask
from discubot.pipeline.routing import output_accepts, route_task_to_outputs


def output(name, domain_filter=None, active=True):
    return FlowOutput(
        name=name, output_type="notion", domain_filter=domain_filter, active=active
    )


def task(domain=None):
    return DetectedTask(title="Task", description="Do it", domain=domain)


class TestOutputAccepts:
    """Tests for a single output's domain filter."""

    def test_no_filter_accepts_everything(self):
        assert output_accepts(output("all"), "frontend")
        assert output_accepts(output("all"), None)

    def test_empty_filter_accepts_everything(self):
        assert output_accepts(output("all", []), "backend")

    def test_filter_matches_case_insensitively(self):
        assert output_accepts(output("fe", ["Frontend"]), "frontend")
        assert output_accepts(output("fe", ["frontend"]), "FRONTEND")

    def test_filter_rejects_other_domain(self):
        assert not output_accepts(output("be", ["backend"]), "frontend")

    def test_filter_rejects_task_without_domain(self):
        assert not output_accepts(output("be", ["backend"]), None)


class TestRouteTaskToOutputs:
    """Tests for routing one task across a flow's outputs."""

    def test_routes_to_every_matching_output(self):
        outputs = [
            output("backend", ["backend"]),
            output("everything"),
            output("product", ["frontend", "design"]),
        ]

        matched = route_task_to_outputs(task("frontend"), outputs)

        assert [o.name for o in matched] == ["everything", "product"]

    def test_inactive_outputs_are_skipped(self):
        outputs = [output("everything", active=False), output("frontend", ["frontend"])]

        matched = route_task_to_outputs(task("frontend"), outputs)

        assert [o.name for o in matched] == ["frontend"]

    def test_no_match_returns_empty_list(self):
        outputs = [output("backend", ["backend"])]

        assert route_task_to_outputs(task("design"), outputs) == []

    def test_task_without_domain_goes_to_unfiltered_outputs(self):
        outputs = [output("backend", ["backend"]), output("inbox")]

        matched = route_task_to_outputs(task(), outputs)

        assert [o.name for o in matched] == ["inbox"]
