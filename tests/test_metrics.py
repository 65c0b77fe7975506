from core.models import Objective
from services.metrics import count_by_status, objective_progress, overall_progress, summarize

from tests.conftest import make_task


class TestMetrics:

    def test_progress_of_empty_objective_is_zero(self):
        assert objective_progress([]) == 0.0

    def test_objective_progress(self):
        tasks = [make_task("a", status="Done"), make_task("b"), make_task("c"), make_task("d", status="Done")]
        assert objective_progress(tasks) == 50.0

    def test_count_by_status_lists_every_status(self, two_objectives):
        counts = count_by_status(two_objectives)
        assert counts == {"To Do": 1, "In Progress": 1, "Blocked": 1, "Done": 1}

    def test_count_by_status_with_no_objectives(self):
        assert set(count_by_status([]).values()) == {0}

    def test_overall_progress_spans_objectives(self, two_objectives):
        assert overall_progress(two_objectives) == 25.0

    def test_summarize(self, two_objectives):
        empty = Objective(id="o3", description="Empty")
        s = summarize(two_objectives + [empty])

        assert s.total_objectives == 3
        assert s.total_tasks == 4
        assert s.by_status["Done"] == 1
        assert s.progress == 25.0
