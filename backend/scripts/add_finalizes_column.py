"""Add finalizes_task_id column (one final check per workload) to tasks table."""

import asyncio
from sqlalchemy import text
from studyloop.database import engine


async def add_finalizes_column():
    async with engine.begin() as conn:
        # Check if column exists
        result = await conn.execute(text('''
            SELECT column_name FROM information_schema.columns 
            WHERE table_name = 'tasks' AND column_name = 'finalizes_task_id'
        '''))
        if result.fetchone() is None:
            await conn.execute(text('ALTER TABLE tasks ADD COLUMN finalizes_task_id UUID'))
            # Backfill existing final checks so the constraint covers them
            await conn.execute(text('''
                UPDATE tasks SET finalizes_task_id = parent_task_id
                WHERE cycle_number = 3 AND learning_stage = 'PERFECT'
                  AND parent_task_id IS NOT NULL
            '''))
            await conn.execute(text(
                'ALTER TABLE tasks ADD CONSTRAINT uq_tasks_finalizes_task_id UNIQUE (finalizes_task_id)'
            ))
            print('Added finalizes_task_id column')
        else:
            print('Column already exists')


if __name__ == "__main__":
    asyncio.run(add_finalizes_column())
