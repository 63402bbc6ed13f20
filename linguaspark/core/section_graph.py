"""
Declared dependency graph of lesson sections
"""
import heapq
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List

from linguaspark.core.exceptions import SectionGraphError


@dataclass(frozen=True)
class SectionTask:
    name: str
    priority: int
    dependencies: FrozenSet[str] = field(default_factory=frozenset)


class SectionGraph:
    """DAG of section tasks, validated on construction."""

    def __init__(self, tasks: Iterable[SectionTask]):
        self.tasks: Dict[str, SectionTask] = {}
        for task in tasks:
            if task.name in self.tasks:
                raise SectionGraphError(f"Duplicate section task '{task.name}'", {"section": task.name})
            self.tasks[task.name] = task

        for task in self.tasks.values():
            unknown = task.dependencies - self.tasks.keys()
            if unknown:
                raise SectionGraphError(
                    f"Section '{task.name}' depends on undeclared sections: {', '.join(sorted(unknown))}",
                    {"section": task.name, "unknown": sorted(unknown)}
                )

        self._order = self._topological_order()

    def _topological_order(self) -> List[str]:
        # Kahn's algorithm; the heap picks the lowest (priority, name) among ready tasks
        in_degree = {name: len(task.dependencies) for name, task in self.tasks.items()}
        dependents: Dict[str, List[str]] = {name: [] for name in self.tasks}
        for task in self.tasks.values():
            for dep in task.dependencies:
                dependents[dep].append(task.name)

        ready = [(task.priority, name) for name, task in self.tasks.items() if in_degree[name] == 0]
        heapq.heapify(ready)
        order = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(name)
            for child in dependents[name]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(ready, (self.tasks[child].priority, child))

        if len(order) != len(self.tasks):
            cyclic = sorted(name for name, degree in in_degree.items() if degree > 0)
            raise SectionGraphError(
                f"Section dependency cycle among: {', '.join(cyclic)}",
                {"sections": cyclic}
            )
        return order

    def execution_order(self) -> List[str]:
        return list(self._order)

    def dependencies_of(self, name: str) -> FrozenSet[str]:
        return self.tasks[name].dependencies

    def __contains__(self, name: str) -> bool:
        return name in self.tasks

    def __len__(self) -> int:
        return len(self.tasks)


def _task(name: str, priority: int, *dependencies: str) -> SectionTask:
    return SectionTask(name=name, priority=priority, dependencies=frozenset(dependencies))


# Built at import so a bad declaration fails at startup
DEFAULT_SECTION_GRAPH = SectionGraph([
    _task("warmup", 1),
    _task("vocabulary", 2),
    _task("reading", 3, "vocabulary"),
    _task("comprehension", 4, "reading"),
    _task("discussion", 5),
    _task("dialoguePractice", 6, "vocabulary"),
    _task("dialogueFillGap", 7, "vocabulary"),
    _task("grammar", 8),
    _task("pronunciation", 9, "vocabulary"),
    _task("wrapup", 10, "reading"),
])

LESSON_SECTIONS = tuple(DEFAULT_SECTION_GRAPH.execution_order())
