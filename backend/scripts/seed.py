#!/usr/bin/env python3
"""
Seed script to generate a grade roster and a distributed workload.

Creates:
- A grade of N students
- One template workload split into daily subtasks
- A copy of that workload for every student in the grade

Usage:
    python -m scripts.seed [--students 30] [--clear]

Options:
    --students N   Number of students to create (default: 30)
    --clear        Clear existing data before seeding
    --grade        Grade id for the roster
    --pages        Pages in the template workload
"""

import argparse
import asyncio
import time
from datetime import date, timedelta

from sqlalchemy import text

from studyloop.database import async_session_maker, get_session_context, get_task_store, init_db
from studyloop.models import Student
from studyloop.schemas import SplitWorkloadRequest
from studyloop.services.distribution import distribute_task
from studyloop.services.planner import plan_split_workload


async def clear_data():
    """Clear all existing data."""
    print("Clearing existing data...")
    async with async_session_maker() as session:
        await session.execute(
            text("TRUNCATE task_relationships, task_mistakes, tasks, students CASCADE")
        )
        await session.commit()
    print("Data cleared.")


async def create_roster(grade_id: str, num_students: int) -> int:
    """Insert the students of one grade."""
    async with get_session_context() as session:
        session.add_all([
            Student(
                id=f"{grade_id}-s{i:03d}",
                display_name=f"Student {i:03d}",
                grade_id=grade_id,
            )
            for i in range(num_students)
        ])
    return num_students


async def get_stats(grade_id: str):
    """Get statistics about the seeded grade."""
    async with async_session_maker() as session:
        task_count = await session.execute(
            text("SELECT COUNT(*) FROM tasks WHERE grade_id = :gid"),
            {"gid": grade_id},
        )
        parent_count = await session.execute(
            text("SELECT COUNT(*) FROM tasks WHERE grade_id = :gid AND parent_task_id IS NULL"),
            {"gid": grade_id},
        )
        num_tasks = task_count.scalar()
        num_parents = parent_count.scalar()

        print(f"\n=== Grade Statistics ===")
        print(f"Distributed tasks: {num_tasks}")
        print(f"Workload copies:   {num_parents}")


async def main():
    parser = argparse.ArgumentParser(description="Seed the database with a distributed workload")
    parser.add_argument("--students", type=int, default=30, help="Number of students to create")
    parser.add_argument("--clear", action="store_true", help="Clear existing data first")
    parser.add_argument("--grade", type=str, default="g10", help="Grade id")
    parser.add_argument("--pages", type=int, default=120, help="Pages in the template workload")

    args = parser.parse_args()

    print(f"=== StudyLoop Seed Script ===")

    # Initialize database
    await init_db()

    if args.clear:
        await clear_data()

    await create_roster(args.grade, args.students)
    print(f"Created {args.students} students in grade {args.grade}")

    store = get_task_store()
    today = date.today()
    planned = await plan_split_workload(store, SplitWorkloadRequest(
        title="Workbook",
        subject="math",
        total_units=args.pages,
        start_date=today,
        end_date=today + timedelta(days=13),
        use_auto_calculation=True,
        range_start=1,
        range_end=args.pages,
        estimated_time=args.pages * 2,
        assigned_to="instructor",
        created_by="instructor",
        test_period_id="seed",
    ))
    print(
        f"Planned template {planned.parent.id}: "
        f"{planned.day_count} days x {planned.daily_units} pages"
    )

    start_time = time.time()
    report = await distribute_task(store, planned.parent.id, args.grade)
    dist_time = time.time() - start_time
    print(f"Distribution time: {dist_time:.2f}s")
    print(f"Succeeded: {report.success_count}, failed: {report.error_count}")
    for error in report.errors:
        print(f"  {error}")

    await get_stats(args.grade)

    print(f"\n=== Seeding Complete ===")
    print(f"Template task ID: {planned.parent.id}")


if __name__ == "__main__":
    asyncio.run(main())
