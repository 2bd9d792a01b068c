"""
Split planner tests - slicing a bulk workload into daily subtasks.
"""

import math
from datetime import date, timedelta

import pytest

from studyloop.exceptions import InvalidPlanError
from studyloop.models.enums import LearningStage, TaskType, UnitType
from studyloop.services.planner import (
    compute_daily_units,
    plan_slices,
    plan_split_workload,
)

from conftest import START, split_request


class TestPlanSlices:
    """Pure slice computation."""

    def test_thirty_pages_four_per_day(self):
        """
        Scenario: 30 pages at 4/day from May 1
        Expected: 8 slices [4,4,4,4,4,4,4,2] due May 1..May 8
        """
        slices = plan_slices(30, 4, date(2024, 5, 1))

        assert [s.units for s in slices] == [4, 4, 4, 4, 4, 4, 4, 2]
        assert [s.due_date for s in slices] == [
            date(2024, 5, 1) + timedelta(days=i) for i in range(8)
        ]

    @pytest.mark.parametrize("total_units,daily_units", [
        (1, 1), (1, 5), (7, 7), (10, 3), (31, 4), (100, 9), (250, 17),
    ])
    def test_slices_sum_to_total(self, total_units, daily_units):
        slices = plan_slices(total_units, daily_units, START)

        assert sum(s.units for s in slices) == total_units
        assert all(0 < s.units <= daily_units for s in slices)
        # Only the last slice may be short
        assert all(s.units == daily_units for s in slices[:-1])

    @pytest.mark.parametrize("total_units,daily_units", [(5, 2), (12, 4), (99, 10)])
    def test_last_due_date_is_start_plus_day_count(self, total_units, daily_units):
        slices = plan_slices(total_units, daily_units, START)
        day_count = math.ceil(total_units / daily_units)

        assert len(slices) == day_count
        assert slices[-1].due_date == START + timedelta(days=day_count - 1)

    def test_range_labels_follow_page_numbers(self):
        slices = plan_slices(10, 4, START, unit_type=UnitType.PAGES, range_start=21)

        assert [s.range_label for s in slices] == [
            "pages 21-24", "pages 25-28", "pages 29-30",
        ]

    def test_no_range_labels_for_hours(self):
        slices = plan_slices(6, 2, START, unit_type=UnitType.HOURS, range_start=1)

        assert all(s.range_label is None for s in slices)

    def test_estimated_time_is_apportioned(self):
        slices = plan_slices(30, 4, START, estimated_time=120)

        assert slices[0].estimated_time == 16  # ceil(120 * 4 / 30)
        assert slices[-1].estimated_time == 8

    @pytest.mark.parametrize("total_units,daily_units", [(0, 4), (-3, 4), (10, 0), (10, -1)])
    def test_non_positive_inputs_rejected(self, total_units, daily_units):
        with pytest.raises(InvalidPlanError):
            plan_slices(total_units, daily_units, START)


class TestAutoCalculation:

    def test_pace_covers_window(self):
        # 30 pages, twice, in 10 days -> 6/day
        assert compute_daily_units(30, 2, date(2024, 5, 1), date(2024, 5, 10)) == 6

    def test_pace_rounds_up(self):
        assert compute_daily_units(10, 1, date(2024, 5, 1), date(2024, 5, 3)) == 4

    def test_single_day_window(self):
        assert compute_daily_units(12, 1, START, START) == 12

    def test_reversed_window_rejected(self):
        with pytest.raises(InvalidPlanError) as exc_info:
            compute_daily_units(10, 1, date(2024, 5, 10), date(2024, 5, 1))
        assert exc_info.value.field == "end_date"


class TestPlanSplitWorkload:
    """Persisting a plan through the task store."""

    @pytest.mark.asyncio
    async def test_creates_parent_and_subtasks(self, store):
        planned = await plan_split_workload(store, split_request())

        assert planned.parent.task_type == TaskType.PARENT
        assert planned.parent.total_units == 30
        assert planned.day_count == 8
        assert planned.daily_units == 4
        assert len(store.tasks) == 9

        for subtask in planned.subtasks:
            assert subtask.task_type == TaskType.SUBTASK
            assert subtask.parent_task_id == planned.parent.id
            assert subtask.cycle_number == 1
            assert subtask.learning_stage == LearningStage.OVERVIEW
            assert subtask.assigned_to == "student-1"

    @pytest.mark.asyncio
    async def test_subtasks_in_day_order(self, store):
        planned = await plan_split_workload(store, split_request())

        assert [t.title for t in planned.subtasks][:2] == [
            "Algebra workbook (day 1)",
            "Algebra workbook (day 2)",
        ]
        assert planned.parent.due_date == planned.subtasks[-1].due_date

    @pytest.mark.asyncio
    async def test_total_from_range(self, store):
        planned = await plan_split_workload(
            store,
            split_request(total_units=None, range_start=11, range_end=20, daily_units=5),
        )

        assert planned.parent.total_units == 10
        assert planned.subtasks[1].title == "Algebra workbook (day 2: pages 16-20)"

    @pytest.mark.asyncio
    async def test_auto_calculation_uses_end_date(self, store):
        planned = await plan_split_workload(
            store,
            split_request(
                daily_units=None,
                use_auto_calculation=True,
                end_date=date(2024, 5, 10),
            ),
        )

        assert planned.daily_units == 3
        assert planned.day_count == 10
        assert planned.parent.due_date == date(2024, 5, 10)

    @pytest.mark.asyncio
    async def test_start_date_defaults_to_today(self, store):
        planned = await plan_split_workload(
            store,
            split_request(start_date=None),
            today=date(2024, 9, 1),
        )

        assert planned.subtasks[0].due_date == date(2024, 9, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"daily_units": 0},
        {"daily_units": None},
        {"total_units": None},
        {"end_date": date(2024, 4, 1)},
        {"use_auto_calculation": True, "daily_units": None},
        {"cycle_repeats": 0},
        {"total_units": None, "range_start": 10, "range_end": 5},
    ])
    async def test_invalid_plan_writes_nothing(self, store, overrides):
        with pytest.raises(InvalidPlanError):
            await plan_split_workload(store, split_request(**overrides))

        assert store.tasks == {}
