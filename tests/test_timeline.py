"""Tests for the Gantt timeline layout."""

from datetime import date, datetime, timedelta, timezone

from core.models import Objective
from services.timeline import (
    BAR_GAP,
    DAY_WIDTH,
    NO_VALID_DATES,
    Timeline,
    TimelineNotice,
    day_of,
    layout_objective,
    layout_objectives,
    task_span,
)

from tests.conftest import make_task, utc


def objective_with(*tasks, objective_id="o1"):
    return Objective(id=objective_id, description="Release", tasks=list(tasks))


class TestWindow:
    """Shared day window across an objective's tasks."""

    def test_window_spans_earliest_start_to_latest_due(self):
        """Tasks Jul 1-5 and Jul 3-10 give a Jul 1..Jul 10 window of 10 days."""
        obj = objective_with(
            make_task("a", start=utc(2024, 7, 1), due=utc(2024, 7, 5)),
            make_task("b", start=utc(2024, 7, 3), due=utc(2024, 7, 10)),
        )
        timeline = layout_objective(obj)

        assert isinstance(timeline, Timeline)
        assert timeline.window_start == date(2024, 7, 1)
        assert timeline.window_end == date(2024, 7, 10)
        assert timeline.day_count == 10
        assert timeline.days[0] == date(2024, 7, 1)
        assert timeline.days[-1] == date(2024, 7, 10)
        assert len(timeline.days) == 10

    def test_window_ignores_time_of_day(self):
        """Instants are cut down to their calendar day."""
        obj = objective_with(
            make_task("a", start=utc(2024, 7, 1, 23, 59), due=utc(2024, 7, 2, 0, 1)),
        )
        timeline = layout_objective(obj)

        assert timeline.window_start == date(2024, 7, 1)
        assert timeline.window_end == date(2024, 7, 2)
        assert timeline.bars[0].duration_days == 2

    def test_width_in_pixels(self):
        obj = objective_with(make_task("a", start=utc(2024, 7, 1), due=utc(2024, 7, 3)))
        assert layout_objective(obj).width_pixels(DAY_WIDTH) == 3 * DAY_WIDTH


class TestBars:
    """Per-task bar geometry."""

    def test_single_day_task_lasts_one_day(self):
        obj = objective_with(make_task("a", start=utc(2024, 7, 1, 8), due=utc(2024, 7, 1, 18)))
        bar = layout_objective(obj).bars[0]

        assert bar.duration_days == 1
        assert bar.start_offset_days == 0

    def test_three_day_task(self):
        """Jul 1 to Jul 3 is three days long and starts at offset 0."""
        obj = objective_with(
            make_task("a", start=utc(2024, 7, 1), due=utc(2024, 7, 3)),
            make_task("b", start=utc(2024, 7, 2), due=utc(2024, 7, 6)),
        )
        bars = {b.task_id: b for b in layout_objective(obj).bars}

        assert bars["a"].duration_days == 3
        assert bars["a"].start_offset_days == 0
        assert bars["b"].start_offset_days == 1
        assert bars["b"].duration_days == 5

    def test_pixels(self):
        obj = objective_with(
            make_task("a", start=utc(2024, 7, 1), due=utc(2024, 7, 1)),
            make_task("b", start=utc(2024, 7, 3), due=utc(2024, 7, 4)),
        )
        bars = {b.task_id: b for b in layout_objective(obj).bars}

        assert bars["b"].offset_pixels(DAY_WIDTH) == 2 * DAY_WIDTH
        assert bars["b"].width_pixels(DAY_WIDTH) == 2 * DAY_WIDTH - BAR_GAP
        assert bars["a"].offset_pixels(DAY_WIDTH) == 0

    def test_gap_dropped_for_narrow_days(self):
        obj = objective_with(make_task("a", start=utc(2024, 7, 1), due=utc(2024, 7, 2)))
        bar = layout_objective(obj).bars[0]

        assert bar.width_pixels(day_width=2, gap=2) == 4
        assert bar.width_pixels(day_width=1, gap=2) == 2

    def test_bars_keep_task_order_and_fields(self):
        obj = objective_with(
            make_task("z", start=utc(2024, 7, 5), due=utc(2024, 7, 6), priority="High", status="Blocked"),
            make_task("y", start=utc(2024, 7, 1), due=utc(2024, 7, 2)),
        )
        bars = layout_objective(obj).bars

        assert [b.task_id for b in bars] == ["z", "y"]
        assert bars[0].priority == "High"
        assert bars[0].status == "Blocked"
        assert bars[0].start_offset_days == 4


class TestEligibility:
    """Which tasks make it onto the chart."""

    def test_start_falls_back_to_created_at(self):
        task = make_task("a", created=utc(2024, 6, 28, 15), due=utc(2024, 7, 2))
        assert task_span(task) == (date(2024, 6, 28), date(2024, 7, 2))

    def test_task_without_due_date_is_excluded(self):
        obj = objective_with(
            make_task("a", start=utc(2024, 7, 1), due=utc(2024, 7, 3)),
            make_task("b", start=utc(2024, 6, 1)),
        )
        timeline = layout_objective(obj)

        assert [b.task_id for b in timeline.bars] == ["a"]
        assert timeline.window_start == date(2024, 7, 1)

    def test_due_before_start_on_same_day_is_clamped(self):
        """A due instant earlier than the start on the same day still shows as one day."""
        obj = objective_with(make_task("a", start=utc(2024, 7, 1, 15), due=utc(2024, 7, 1, 9)))
        timeline = layout_objective(obj)

        assert isinstance(timeline, Timeline)
        bar = timeline.bars[0]
        assert bar.start == bar.end == date(2024, 7, 1)
        assert bar.duration_days == 1

    def test_due_on_an_earlier_day_is_excluded(self):
        obj = objective_with(
            make_task("a", start=utc(2024, 7, 5), due=utc(2024, 7, 2)),
            make_task("b", start=utc(2024, 7, 1), due=utc(2024, 7, 1)),
        )
        timeline = layout_objective(obj)

        assert [b.task_id for b in timeline.bars] == ["b"]
        assert timeline.window_end == date(2024, 7, 1)

    def test_no_due_dates_gives_notice(self):
        """Every task lacking a due date produces the notice, not an empty chart."""
        obj = objective_with(make_task("a"), make_task("b", start=utc(2024, 7, 1)))
        result = layout_objective(obj)

        assert isinstance(result, TimelineNotice)
        assert result.objective_id == "o1"
        assert result.message == NO_VALID_DATES

    def test_objective_without_tasks_gives_notice(self):
        assert isinstance(layout_objective(objective_with()), TimelineNotice)


class TestDayTruncation:
    """Day boundaries are UTC."""

    def test_aware_datetime_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        assert day_of(datetime(2024, 7, 2, 1, 0, tzinfo=plus_two)) == date(2024, 7, 1)

    def test_naive_datetime_taken_as_is(self):
        assert day_of(datetime(2024, 7, 2, 23, 0)) == date(2024, 7, 2)

    def test_plain_date(self):
        assert day_of(date(2024, 7, 2)) == date(2024, 7, 2)


class TestMultipleObjectives:

    def test_one_entry_per_objective(self):
        good = objective_with(make_task("a", "o1", start=utc(2024, 7, 1), due=utc(2024, 7, 2)))
        empty = objective_with(make_task("b", "o2"), objective_id="o2")
        results = layout_objectives([good, empty])

        assert isinstance(results[0], Timeline)
        assert isinstance(results[1], TimelineNotice)
        assert results[1].objective_id == "o2"

    def test_layout_is_repeatable(self):
        obj = objective_with(
            make_task("a", start=utc(2024, 7, 1), due=utc(2024, 7, 5)),
            make_task("b", start=utc(2024, 7, 3), due=utc(2024, 7, 10)),
        )
        assert layout_objective(obj) == layout_objective(obj)
