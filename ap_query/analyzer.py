"""Core aggregation queries over a loaded profile."""

from __future__ import annotations

from typing import NamedTuple

from ap_query.errors import AssertBelowFailed, NoLineInfo
from ap_query.model import StackFile
from ap_query.names import display_name, matches_method, pct, truncate
from ap_query.pathtree import (
    PathTree,
    aggregate_from_root,
    aggregate_paths,
    ancestor_path,
    descendant_path
)
from ap_query import render


class HotEntry(NamedTuple):
    name: str
    self_count: int
    total_count: int


class ThreadEntry(NamedTuple):
    name: str
    samples: int


class LineEntry(NamedTuple):
    name: str
    line: int
    samples: int


class DiffEntry(NamedTuple):
    name: str
    before: float
    after: float
    delta: float


class DiffReport(NamedTuple):
    regressions: list[DiffEntry]
    improvements: list[DiffEntry]
    new: list[DiffEntry]
    gone: list[DiffEntry]

    def is_empty(self) -> bool:
        return not (self.regressions or self.improvements or self.new or self.gone)


def compute_hot(sf: StackFile, fqn: bool = False) -> list[HotEntry]:
    """
    Rank methods by self time.

    Self time goes to the leaf frame only; total time goes once per stack to
    every distinct name in it, so recursion does not double count. Methods
    that are never a leaf are kept with a self count of zero.
    """
    if sf.total_samples == 0:
        return []

    self_counts: dict[str, int] = {}
    total_counts: dict[str, int] = {}
    for st in sf.stacks:
        leaf = display_name(st.leaf, fqn)
        self_counts[leaf] = self_counts.get(leaf, 0) + st.count
        for name in {display_name(frame, fqn) for frame in st.frames}:
            total_counts[name] = total_counts.get(name, 0) + st.count

    ranked = [
        HotEntry(name, self_counts.get(name, 0), total)
        for name, total in total_counts.items()
    ]
    ranked.sort(key=lambda e: (-e.self_count, e.name))
    return ranked


def rank_by_total(ranked: list[HotEntry]) -> list[HotEntry]:
    return sorted(ranked, key=lambda e: (-e.total_count, e.name))


def compute_threads(sf: StackFile) -> tuple[list[ThreadEntry], int, bool]:
    """
    Sum samples per thread label.

    Returns:
        Tuple of (ranked_threads, unlabelled_samples, has_thread_info)
    """
    if sf.total_samples == 0:
        return [], 0, False

    thread_counts: dict[str, int] = {}
    no_thread = 0
    for st in sf.stacks:
        if st.thread:
            thread_counts[st.thread] = thread_counts.get(st.thread, 0) + st.count
        else:
            no_thread += st.count

    ranked = [ThreadEntry(name, count) for name, count in thread_counts.items()]
    ranked.sort(key=lambda e: (-e.samples, e.name))
    return ranked, no_thread, bool(thread_counts)


def compute_lines(sf: StackFile, method: str, top: int = 0, fqn: bool = False) -> tuple[list[LineEntry], bool]:
    """
    Sum samples per (method, source line) for frames matching method.

    A (name, line) pair repeated inside one stack counts that stack once.

    Returns:
        Tuple of (ranked_lines, method_found). method_found is True with an
        empty list when frames match but none has a line number.
    """
    if sf.total_samples == 0:
        return [], False

    line_counts: dict[tuple[str, int], int] = {}
    method_found = False
    for st in sf.stacks:
        seen: set[tuple[str, int]] = set()
        for frame, line in zip(st.frames, st.lines):
            if not matches_method(frame, method):
                continue
            method_found = True
            if line <= 0:
                continue
            key = (display_name(frame, fqn), line)
            if key not in seen:
                seen.add(key)
                line_counts[key] = line_counts.get(key, 0) + st.count

    ranked = [LineEntry(name, line, count) for (name, line), count in line_counts.items()]
    ranked.sort(key=lambda e: (-e.samples, e.name, e.line))
    return ranked[:truncate(len(ranked), top)], method_found


def self_pcts(sf: StackFile, fqn: bool = False) -> dict[str, float]:
    counts: dict[str, int] = {}
    for st in sf.stacks:
        leaf = display_name(st.leaf, fqn)
        counts[leaf] = counts.get(leaf, 0) + st.count
    return {name: pct(count, sf.total_samples) for name, count in counts.items()}


def compute_diff(
    before: StackFile,
    after: StackFile,
    min_delta: float,
    top: int = 0,
    fqn: bool = False
) -> DiffReport:
    """
    Compare self-time percentages of two profiles.

    Methods in both profiles are a regression or improvement when the change
    reaches min_delta; methods in only one are new or gone when their own
    percentage reaches it. Each bucket is ordered by size of change and cut
    to top independently.
    """
    before_pct = self_pcts(before, fqn)
    after_pct = self_pcts(after, fqn)

    regressions: list[DiffEntry] = []
    improvements: list[DiffEntry] = []
    new: list[DiffEntry] = []
    gone: list[DiffEntry] = []

    for name in set(before_pct) | set(after_pct):
        if name in before_pct and name in after_pct:
            b = before_pct[name]
            a = after_pct[name]
            delta = a - b
            if delta == 0:
                continue
            if delta >= min_delta:
                regressions.append(DiffEntry(name, b, a, delta))
            elif -delta >= min_delta:
                improvements.append(DiffEntry(name, b, a, delta))
        elif name in after_pct:
            a = after_pct[name]
            if a >= min_delta:
                new.append(DiffEntry(name, 0.0, a, a))
        else:
            b = before_pct[name]
            if b >= min_delta:
                gone.append(DiffEntry(name, b, 0.0, -b))

    def ranked(entries: list[DiffEntry]) -> list[DiffEntry]:
        entries.sort(key=lambda e: (-abs(e.delta), e.name))
        return entries[:truncate(len(entries), top)]

    return DiffReport(ranked(regressions), ranked(improvements), ranked(new), ranked(gone))


def _descendant_tree(sf: StackFile, method: str, fqn: bool = False) -> PathTree:
    return aggregate_paths(sf, method, descendant_path(fqn))


def hot(sf: StackFile, top: int = 10, fqn: bool = False, assert_below: float = 0.0) -> str:
    """
    Render the self-time and total-time rankings.

    Raises:
        AssertBelowFailed: when assert_below > 0 and the top self-time method
            is at or above it; the rendered tables ride along on the error.
    """
    ranked = compute_hot(sf, fqn)
    if not ranked:
        return ""
    report = render.hot_tables(ranked, rank_by_total(ranked), top, sf.total_samples)
    if assert_below > 0:
        leader = ranked[0]
        leader_pct = pct(leader.self_count, sf.total_samples)
        if leader_pct >= assert_below:
            raise AssertBelowFailed(leader.name, leader_pct, assert_below, report)
    return report


def tree(sf: StackFile, method: str = "", max_depth: int = 4, min_pct: float = 1.0) -> str:
    """Callee tree below method, or the whole profile when method is empty."""
    if sf.total_samples == 0:
        return ""
    if not method:
        return render.tree(aggregate_from_root(sf), method, max_depth, min_pct, show_self=True)
    return render.tree(_descendant_tree(sf, method), method, max_depth, min_pct, show_self=True)


def callers(sf: StackFile, method: str, max_depth: int = 4, min_pct: float = 1.0) -> str:
    """Caller tree above method, matched frame at the root."""
    if sf.total_samples == 0:
        return ""
    pt = aggregate_paths(sf, method, ancestor_path)
    return render.tree(pt, method, max_depth, min_pct, show_self=False)


def trace(sf: StackFile, method: str, min_pct: float = 0.5, fqn: bool = False) -> str:
    """Hottest path below each matched root, one leaf summary per root."""
    if sf.total_samples == 0:
        return ""
    pt = _descendant_tree(sf, method, fqn)
    if not pt:
        return render.no_match(method)
    paths = [pt.hot_path(root, min_pct) for root in pt.trace_roots()]
    return render.trace(paths, pt.sorted_matched_names())


def lines(sf: StackFile, method: str, top: int = 0, fqn: bool = False) -> str:
    """
    Render per-line sample counts for frames matching method.

    Raises:
        NoLineInfo: frames match but none carries a line number
    """
    if sf.total_samples == 0:
        return ""
    ranked, method_found = compute_lines(sf, method, top, fqn)
    if not ranked:
        if method_found:
            raise NoLineInfo(method)
        return render.no_match(method)
    return render.lines_table(ranked, sf.total_samples)


def threads(sf: StackFile, top: int = 0) -> str:
    ranked, no_thread, has_thread = compute_threads(sf)
    if not has_thread:
        if sf.total_samples > 0:
            return "no thread info in this file\n"
        return ""
    ranked = ranked[:truncate(len(ranked), top)]
    return render.threads_table(ranked, no_thread, sf.total_samples)


def diff(before: StackFile, after: StackFile, min_delta: float = 0.5, top: int = 0, fqn: bool = False) -> str:
    return render.diff(compute_diff(before, after, min_delta, top, fqn))


def info(sf: StackFile, expand: int = 3, top_threads: int = 10, top_methods: int = 20) -> str:
    """
    One-shot triage: threads, both hot rankings, total, and drill-downs.

    Each of the top `expand` self-time methods gets a callee tree, a caller
    tree and, when line numbers exist, a per-line breakdown.
    """
    out: list[str] = []

    ranked_threads, _, has_thread = compute_threads(sf)
    if has_thread:
        shown = ranked_threads[:truncate(len(ranked_threads), top_threads)]
        out.append(render.threads_section(shown, sf.total_samples))

    ranked = compute_hot(sf)
    if ranked:
        out.append(render.hot_tables(ranked, rank_by_total(ranked), top_methods, sf.total_samples, show_top_n=True))

    out.append(f"\nTotal samples: {sf.total_samples}\n")

    if expand > 0 and ranked:
        for entry in ranked[:truncate(len(ranked), expand)]:
            out.append(render.drill_down_header(entry.name, pct(entry.self_count, sf.total_samples)))
            out.append("--- tree (callees) ---\n")
            out.append(tree(sf, entry.name, 3, 1.0))
            out.append("--- callers ---\n")
            out.append(callers(sf, entry.name, 3, 1.0))
            line_entries, _ = compute_lines(sf, entry.name, 5)
            if line_entries:
                out.append("--- lines ---\n")
                out.append(render.drill_down_lines(line_entries, sf.total_samples))

    return "".join(out)


def filter_stacks(sf: StackFile, method: str, include_callers: bool = False) -> str:
    """Collapsed text of stacks passing through method, from the match down."""
    out = []
    for st in sf.stacks:
        for idx, frame in enumerate(st.frames):
            if matches_method(frame, method):
                frames = st.frames if include_callers else st.frames[idx:]
                out.append(render.collapsed_line(frames, st.count, st.thread))
                break
    return "".join(out)


def collapse(sf: StackFile) -> str:
    return "".join(render.collapsed_line(st.frames, st.count, st.thread) for st in sf.stacks)
