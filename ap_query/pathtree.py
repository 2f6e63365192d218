"""Prefix-keyed aggregation of stacks into a virtual call tree."""

from __future__ import annotations

from typing import Callable, NamedTuple, Sequence

from ap_query.model import StackFile
from ap_query.names import display_name, matches_method, pct, short_name

PATH_DELIMITER = ";"

PathExtractor = Callable[[Sequence[str], int], list[str]]


class TreeRow(NamedTuple):
    indent: int
    name: str
    pct: float
    self_pct: float | None


class Sibling(NamedTuple):
    count: int
    name: str
    pct: float


class TraceStep(NamedTuple):
    indent: int
    name: str
    pct: float
    sibling: Sibling | None
    leaf: bool
    self_pct: float
    show_self: bool


class PathTree:
    """
    Inclusive and self weights keyed by semicolon-joined name paths.

    Child keys are recorded as they are first seen, so enumerating the
    children of a node never scans the whole key space.
    """

    def __init__(self, total_samples: int):
        self.total_samples = total_samples
        self.samples: dict[str, int] = {}
        self.self_samples: dict[str, int] = {}
        self.matched_names: set[str] = set()
        self._names: dict[str, str] = {}
        self._children: dict[str, list[str]] = {}
        self._roots: list[str] = []

    def __bool__(self) -> bool:
        return bool(self.samples)

    def add_path(self, path: Sequence[str], count: int) -> None:
        """Add count to every prefix of path and to the full path's self weight."""
        if not path:
            return
        key = ""
        parent = None
        for name in path:
            key = name if parent is None else parent + PATH_DELIMITER + name
            if key not in self.samples:
                self.samples[key] = 0
                self._names[key] = name
                if parent is None:
                    self._roots.append(key)
                else:
                    self._children.setdefault(parent, []).append(key)
            self.samples[key] += count
            parent = key
        self.self_samples[key] = self.self_samples.get(key, 0) + count

    def name(self, key: str) -> str:
        return self._names[key]

    def pct(self, count: int) -> float:
        return pct(count, self.total_samples)

    def roots(self) -> list[str]:
        return list(self._roots)

    def children_of(self, key: str) -> list[str]:
        return list(self._children.get(key, ()))

    def sorted_children(self, key: str) -> list[str]:
        """Direct children by inclusive weight descending, then name."""
        return sorted(
            self.children_of(key),
            key=lambda child: (-self.samples[child], self._names[child])
        )

    def sorted_matched_names(self) -> list[str]:
        return sorted(self.matched_names)

    def walk(self, max_depth: int, min_pct: float, show_self: bool) -> list[TreeRow]:
        """
        Flatten the tree into display rows in depth-first order.

        Roots are visited in name order, children heaviest first. A node below
        min_pct is dropped along with its subtree; nothing below max_depth
        (root depth is 1) is visited.
        """
        rows: list[TreeRow] = []
        work = [(root, 1) for root in sorted(self._roots, key=self._names.__getitem__, reverse=True)]
        while work:
            key, depth = work.pop()
            node_pct = self.pct(self.samples[key])
            if node_pct < min_pct:
                continue
            self_pct = None
            if show_self:
                self_count = self.self_samples.get(key, 0)
                if self_count > 0 and self.pct(self_count) >= min_pct:
                    self_pct = self.pct(self_count)
            rows.append(TreeRow(depth - 1, self._names[key], node_pct, self_pct))
            if depth >= max_depth:
                continue
            for child in reversed(self.sorted_children(key)):
                work.append((child, depth + 1))
        return rows

    def trace_roots(self) -> list[str]:
        """Roots by weight descending, name ascending."""
        return sorted(self._roots, key=lambda root: (-self.samples[root], self._names[root]))

    def children_above(self, key: str, min_pct: float) -> list[str]:
        return [
            child for child in self.sorted_children(key)
            if self.pct(self.samples[child]) >= min_pct
        ]

    def hot_path(self, root: str, min_pct: float) -> list[TraceStep]:
        """
        Follow the heaviest child from root until no child reaches min_pct.

        The sibling note on a step describes the runner-up picked at the
        parent, so it belongs to the line of the child that won.
        """
        steps: list[TraceStep] = []
        key = root
        indent = 0
        sibling = None
        while True:
            node_pct = self.pct(self.samples[key])
            if node_pct < min_pct:
                break
            children = self.children_above(key, min_pct)
            if not children:
                self_pct = self.pct(self.self_samples.get(key, 0))
                show_self = self.self_samples.get(key, 0) > 0 and self_pct >= min_pct
                steps.append(TraceStep(indent, self._names[key], node_pct, sibling, True, self_pct, show_self))
                break
            steps.append(TraceStep(indent, self._names[key], node_pct, sibling, False, 0.0, False))
            sibling = None
            if len(children) > 1:
                runner_up = children[1]
                sibling = Sibling(
                    len(children) - 1,
                    self._names[runner_up],
                    self.pct(self.samples[runner_up])
                )
            key = children[0]
            indent += 1
        return steps


def descendant_path(fqn: bool = False) -> PathExtractor:
    """Extractor for the matched frame down to the leaf."""
    def extract(frames: Sequence[str], idx: int) -> list[str]:
        return [display_name(frame, fqn) for frame in frames[idx:]]
    return extract


def ancestor_path(frames: Sequence[str], idx: int) -> list[str]:
    """Matched frame up to the root, matched frame first."""
    return [short_name(frame) for frame in reversed(frames[:idx + 1])]


def aggregate_from_root(sf: StackFile) -> PathTree:
    """Aggregate every stack from its root frame, no matching step."""
    pt = PathTree(sf.total_samples)
    for st in sf.stacks:
        pt.add_path([short_name(frame) for frame in st.frames], st.count)
    return pt


def aggregate_paths(sf: StackFile, method: str, extract: PathExtractor) -> PathTree:
    """
    Aggregate the path extract() derives from each stack's first matching frame.

    Stacks with no frame matching method are ignored.
    """
    pt = PathTree(sf.total_samples)
    for st in sf.stacks:
        for idx, frame in enumerate(st.frames):
            if matches_method(frame, method):
                pt.matched_names.add(short_name(frame))
                pt.add_path(extract(st.frames, idx), st.count)
                break
    return pt
