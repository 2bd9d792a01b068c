"""
Split task planner.

Decomposes a bulk workload (e.g. 30 pages) into daily subtasks:
- day_count = ceil(total_units / daily_units)
- slice i = min(daily_units, remaining), so only the last day is short
- subtask i is due start_date + i days
- with use_auto_calculation, daily_units is the pace that covers the
  workload cycle_repeats times within [start_date, end_date]

Slice computation is pure (plan_slices); plan_split_workload persists the
parent and its subtasks through a TaskStore.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta

from studyloop.config import get_settings
from studyloop.exceptions import InvalidPlanError
from studyloop.logging_config import get_logger
from studyloop.models import Task
from studyloop.models.enums import LearningStage, TaskType, UnitType
from studyloop.schemas.task import TaskCreate
from studyloop.schemas.workload import SplitWorkloadRequest
from studyloop.store.base import TaskFilter, TaskStore

logger = get_logger(__name__)

RANGED_UNIT_TYPES = (UnitType.PAGES, UnitType.PROBLEMS)

UNIT_WORDS = {
    UnitType.PAGES: "pages",
    UnitType.PROBLEMS: "problems",
    UnitType.HOURS: "minutes",
    UnitType.SECTIONS: "sections",
}


@dataclass
class DailySlice:
    """One day of a split workload."""
    day_index: int  # 0-based
    units: int
    due_date: date
    estimated_time: int
    range_label: str | None = None  # e.g. "pages 5-8"


@dataclass
class PlannedWorkload:
    """A persisted parent task with its daily subtasks, in day order."""
    parent: Task
    subtasks: list[Task]
    daily_units: int

    @property
    def day_count(self) -> int:
        return len(self.subtasks)


def days_between_inclusive(start_date: date, end_date: date) -> int:
    """Number of calendar days in [start_date, end_date]; <= 0 for a reversed window."""
    return (end_date - start_date).days + 1


def compute_daily_units(
    total_units: int,
    cycle_repeats: int,
    start_date: date,
    end_date: date,
) -> int:
    """
    Pace needed to cover the workload cycle_repeats times inside the window.

    Formula: ceil(total_units * cycle_repeats / max(1, days in window))

    Raises:
        InvalidPlanError: If the window is reversed or the inputs are not positive.
    """
    if total_units <= 0:
        raise InvalidPlanError("total_units must be positive", field="total_units")
    if cycle_repeats < 1:
        raise InvalidPlanError("cycle_repeats must be at least 1", field="cycle_repeats")
    window = days_between_inclusive(start_date, end_date)
    if window <= 0:
        raise InvalidPlanError(
            f"end_date {end_date} is before start_date {start_date}",
            field="end_date",
        )
    return math.ceil(total_units * cycle_repeats / max(1, window))


def plan_slices(
    total_units: int,
    daily_units: int,
    start_date: date,
    unit_type: UnitType = UnitType.PAGES,
    estimated_time: int = 0,
    range_start: int | None = None,
) -> list[DailySlice]:
    """
    Split total_units into daily slices starting at start_date.

    Example: total_units=30, daily_units=4 from 2024-05-01
    -> 8 slices [4, 4, 4, 4, 4, 4, 4, 2] due 2024-05-01 .. 2024-05-08

    Args:
        total_units: Size of the workload
        daily_units: Units per day (the last day takes the remainder)
        start_date: Due date of the first slice
        unit_type: Used for range labels
        estimated_time: Parent estimate in minutes, apportioned by slice size
        range_start: First page/problem number; enables range labels

    Raises:
        InvalidPlanError: If total_units or daily_units is not positive.
    """
    if total_units <= 0:
        raise InvalidPlanError("total_units must be positive", field="total_units")
    if daily_units <= 0:
        raise InvalidPlanError("daily_units must be positive", field="daily_units")

    day_count = math.ceil(total_units / daily_units)
    label_ranges = range_start is not None and unit_type in RANGED_UNIT_TYPES

    slices = []
    for i in range(day_count):
        units = min(daily_units, total_units - i * daily_units)

        range_label = None
        if label_ranges:
            chunk_start = range_start + i * daily_units
            chunk_end = min(range_start + total_units - 1, chunk_start + units - 1)
            range_label = f"{UNIT_WORDS[unit_type]} {chunk_start}-{chunk_end}"

        slices.append(DailySlice(
            day_index=i,
            units=units,
            due_date=start_date + timedelta(days=i),
            estimated_time=math.ceil(estimated_time * units / total_units),
            range_label=range_label,
        ))

    return slices


def resolve_total_units(request: SplitWorkloadRequest) -> int:
    """total_units from the request, or from the unit range when omitted."""
    has_range = request.range_start is not None and request.range_end is not None
    if has_range and request.range_end < request.range_start:
        raise InvalidPlanError(
            f"range_end {request.range_end} is before range_start {request.range_start}",
            field="range_end",
        )
    if request.total_units is not None:
        total_units = request.total_units
    elif has_range:
        total_units = request.range_end - request.range_start + 1
    else:
        raise InvalidPlanError("total_units or a unit range is required", field="total_units")

    if total_units <= 0:
        raise InvalidPlanError("total_units must be positive", field="total_units")
    return total_units


def resolve_daily_units(request: SplitWorkloadRequest, total_units: int, start_date: date) -> int:
    """daily_units as given, or derived from the date window with auto-calculation."""
    if request.cycle_repeats < 1:
        raise InvalidPlanError("cycle_repeats must be at least 1", field="cycle_repeats")
    if request.end_date is not None and days_between_inclusive(start_date, request.end_date) <= 0:
        raise InvalidPlanError(
            f"end_date {request.end_date} is before start_date {start_date}",
            field="end_date",
        )

    if request.use_auto_calculation:
        if request.end_date is None:
            raise InvalidPlanError("auto calculation needs an end_date", field="end_date")
        return compute_daily_units(total_units, request.cycle_repeats, start_date, request.end_date)

    if request.daily_units is None or request.daily_units <= 0:
        raise InvalidPlanError("daily_units must be positive", field="daily_units")
    return request.daily_units


def subtask_title(title: str, day_slice: DailySlice) -> str:
    day = day_slice.day_index + 1
    if day_slice.range_label:
        return f"{title} (day {day}: {day_slice.range_label})"
    return f"{title} (day {day})"


async def plan_split_workload(
    store: TaskStore,
    request: SplitWorkloadRequest,
    today: date | None = None,
) -> PlannedWorkload:
    """
    Plan and persist a split workload.

    All validation happens before the first write. The parent is created
    first, then one subtask per day in order. Store errors propagate.

    Args:
        store: Task store
        request: Workload description
        today: Default start date (date.today() when None)

    Returns:
        PlannedWorkload with the stored parent and subtasks

    Raises:
        InvalidPlanError: Bad pacing or date inputs
        StoreError: Persistence failure
    """
    start_date = request.start_date or today or date.today()
    total_units = resolve_total_units(request)
    daily_units = resolve_daily_units(request, total_units, start_date)
    estimated_time = (
        request.estimated_time
        if request.estimated_time is not None
        else get_settings().default_estimated_time
    )

    slices = plan_slices(
        total_units,
        daily_units,
        start_date,
        unit_type=request.unit_type,
        estimated_time=estimated_time,
        range_start=request.range_start,
    )
    parent_due = request.end_date or slices[-1].due_date

    parent_id = await store.create_task(TaskCreate(
        title=request.title,
        description=request.description,
        subject=request.subject,
        priority=request.priority,
        task_type=TaskType.PARENT,
        cycle_number=1,
        learning_stage=LearningStage.OVERVIEW,
        total_units=sum(s.units for s in slices),
        unit_type=request.unit_type,
        estimated_time=estimated_time,
        start_date=start_date,
        due_date=parent_due,
        assigned_to=request.assigned_to,
        created_by=request.created_by,
        test_period_id=request.test_period_id,
        is_shared=request.is_shared,
    ))

    unit_word = UNIT_WORDS[request.unit_type]
    for day_slice in slices:
        await store.create_task(TaskCreate(
            title=subtask_title(request.title, day_slice),
            description=f"{day_slice.units} {unit_word}",
            subject=request.subject,
            priority=request.priority,
            task_type=TaskType.SUBTASK,
            parent_task_id=parent_id,
            cycle_number=1,
            learning_stage=LearningStage.OVERVIEW,
            total_units=day_slice.units,
            unit_type=request.unit_type,
            estimated_time=day_slice.estimated_time,
            start_date=day_slice.due_date,
            due_date=day_slice.due_date,
            assigned_to=request.assigned_to,
            created_by=request.created_by,
            test_period_id=request.test_period_id,
            is_shared=request.is_shared,
        ))

    logger.info(
        f"Planned workload '{request.title}': parent={parent_id} "
        f"{total_units} {unit_word} over {len(slices)} days ({daily_units}/day)"
    )

    parent = await store.get_task(parent_id)
    subtasks = await store.list_tasks(TaskFilter(parent_task_id=parent_id))
    return PlannedWorkload(parent=parent, subtasks=subtasks, daily_units=daily_units)
