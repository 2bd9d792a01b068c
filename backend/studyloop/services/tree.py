"""
Workload tree view using NetworkX.

A workload is stored as rows pointing at their parent, plus Relationship
edges for generated review tasks. This module assembles that into a DiGraph:
- Nodes are task IDs, carrying the task fields needed for reporting
- "subtask" edges go from parent -> child (via parent_task_id)
- Relationship edges annotate parent -> review child with the reviewed unit
"""

import uuid
from dataclasses import dataclass

import networkx as nx

from studyloop.exceptions import NotFoundError
from studyloop.models.enums import FINAL_CYCLE, LearningStage, TaskStatus
from studyloop.store.base import TaskFilter, TaskStore


@dataclass
class CycleProgress:
    cycle_number: int
    total: int
    completed: int


async def build_workload_graph(store: TaskStore, parent_task_id: uuid.UUID) -> nx.DiGraph:
    """
    Build a DiGraph of a workload parent and everything under it.

    Children are resolved by parent_task_id queries level by level, so
    nested trees are followed to any depth.
    """
    parent = await store.get_task(parent_task_id)
    if parent is None:
        raise NotFoundError("Task", str(parent_task_id))

    graph = nx.DiGraph(root=parent.id)
    graph.add_node(
        parent.id,
        title=parent.title,
        task_type=parent.task_type,
        cycle_number=parent.cycle_number,
        learning_stage=parent.learning_stage,
        status=parent.status,
        due_date=parent.due_date,
    )

    frontier = [parent.id]
    while frontier:
        current = frontier.pop()
        for child in await store.list_tasks(TaskFilter(parent_task_id=current)):
            graph.add_node(
                child.id,
                title=child.title,
                task_type=child.task_type,
                cycle_number=child.cycle_number,
                learning_stage=child.learning_stage,
                status=child.status,
                due_date=child.due_date,
            )
            graph.add_edge(current, child.id, kind="subtask")
            frontier.append(child.id)

    for edge in await store.list_relationships(parent_task_id):
        if edge.child_task_id in graph:
            graph.add_edge(
                edge.parent_task_id,
                edge.child_task_id,
                kind="review",
                unit_reference=edge.unit_reference,
                cycle_number=edge.cycle_number,
            )

    return graph


def review_unit_map(graph: nx.DiGraph) -> dict[uuid.UUID, int]:
    """Map each review task to the unit it reviews."""
    return {
        child: data["unit_reference"]
        for _, child, data in graph.edges(data=True)
        if data.get("kind") == "review"
    }


def cycle_progress(graph: nx.DiGraph) -> list[CycleProgress]:
    """Total and completed tasks per cycle, excluding the root itself."""
    root = graph.graph["root"]
    counts: dict[int, CycleProgress] = {}
    for node in nx.descendants(graph, root):
        data = graph.nodes[node]
        progress = counts.setdefault(
            data["cycle_number"],
            CycleProgress(cycle_number=data["cycle_number"], total=0, completed=0),
        )
        progress.total += 1
        if data["status"] == TaskStatus.COMPLETED:
            progress.completed += 1
    return [counts[c] for c in sorted(counts)]


def is_finalized(graph: nx.DiGraph) -> bool:
    """True when the root already has its cycle-3 final check."""
    root = graph.graph["root"]
    return any(
        graph.nodes[child]["cycle_number"] == FINAL_CYCLE
        and graph.nodes[child]["learning_stage"] == LearningStage.PERFECT
        for child in graph.successors(root)
    )
