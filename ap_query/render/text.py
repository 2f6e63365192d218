"""Fixed-width text output shared by the CLI and library callers."""

from __future__ import annotations

from typing import Sequence

from ap_query.names import pct, truncate
from ap_query.pathtree import PathTree, TraceStep

INDENT = "  "
SELF_MARKER = "←"
HOT_HEADER = "%-50s %7s %7s %9s\n" % ("METHOD", "SELF%", "TOTAL%", "SAMPLES")
LINES_HEADER = "%-40s %9s %7s\n" % ("SOURCE:LINE", "SAMPLES", "PCT")
THREADS_HEADER = "%-30s %9s %7s\n" % ("THREAD", "SAMPLES", "PCT")
NO_THREAD_LABEL = "(no thread info)"


def no_match(method: str) -> str:
    return f"no frames matching '{method}'\n"


def _matched_header(names: list[str]) -> str:
    if len(names) <= 1:
        return ""
    return f"# matched {len(names)} methods: {', '.join(names)}\n"


def _self_suffix(self_pct: float) -> str:
    return f"  {SELF_MARKER} self={self_pct:.1f}%"


def _hot_rows(entries, total_samples: int, by_total: bool) -> list[str]:
    rows = []
    for e in entries:
        sp = pct(e.self_count, total_samples)
        tp = pct(e.total_count, total_samples)
        samples = e.total_count if by_total else e.self_count
        rows.append("%-50s %6.1f%% %6.1f%% %9d\n" % (e.name, sp, tp, samples))
    return rows


def hot_tables(ranked, total_ranked, top: int, total_samples: int, show_top_n: bool = False) -> str:
    """Self-time table followed by the total-time table, each cut to top."""
    self_rows = ranked[:truncate(len(ranked), top)]
    total_rows = total_ranked[:truncate(len(total_ranked), top)]

    def title(kind: str, shown: int) -> str:
        if show_top_n:
            return f"=== RANK BY {kind} TIME (top {shown}) ===\n"
        return f"=== RANK BY {kind} TIME ===\n"

    out = [title("SELF", len(self_rows)), HOT_HEADER]
    out.extend(_hot_rows(self_rows, total_samples, by_total=False))
    out.append("\n")
    out.append(title("TOTAL", len(total_rows)))
    out.append(HOT_HEADER)
    out.extend(_hot_rows(total_rows, total_samples, by_total=True))
    return "".join(out)


def tree(pt: PathTree, method: str, max_depth: int, min_pct: float, show_self: bool) -> str:
    """
    Indented tree with inclusive percentages.

    show_self adds the leaf marker for nodes where samples terminate; it is
    meaningful for callee trees only.
    """
    if not pt:
        return no_match(method)

    out = [_matched_header(pt.sorted_matched_names())]
    for row in pt.walk(max_depth, min_pct, show_self):
        line = f"{INDENT * row.indent}[{row.pct:.1f}%] {row.name}"
        if row.self_pct is not None:
            line += _self_suffix(row.self_pct)
        out.append(line + "\n")
    return "".join(out)


def _sibling_note(step: TraceStep) -> str:
    if step.sibling is None:
        return ""
    word = "sibling" if step.sibling.count == 1 else "siblings"
    return f"  (+{step.sibling.count} {word}, next: {step.sibling.pct:.1f}% {step.sibling.name})"


def trace(paths: Sequence[Sequence[TraceStep]], matched_names: list[str]) -> str:
    out = [_matched_header(matched_names)]
    for steps in paths:
        for step in steps:
            line = f"{INDENT * step.indent}[{step.pct:.1f}%] {step.name}{_sibling_note(step)}"
            if step.leaf and step.show_self:
                line += _self_suffix(step.self_pct)
            out.append(line + "\n")
            if step.leaf:
                out.append(f"Hottest leaf: {step.name} (self={step.self_pct:.1f}%)\n")
    return "".join(out)


def lines_table(entries, total_samples: int) -> str:
    out = [LINES_HEADER]
    for e in entries:
        loc = f"{e.name}:{e.line}"
        out.append("%-40s %9d %6.1f%%\n" % (loc, e.samples, pct(e.samples, total_samples)))
    return "".join(out)


def threads_table(entries, no_thread: int, total_samples: int) -> str:
    out = [THREADS_HEADER]
    for e in entries:
        out.append("%-30s %9d %6.1f%%\n" % (e.name, e.samples, pct(e.samples, total_samples)))
    if no_thread > 0:
        out.append("%-30s %9d %6.1f%%\n" % (NO_THREAD_LABEL, no_thread, pct(no_thread, total_samples)))
    return "".join(out)


def threads_section(entries, total_samples: int) -> str:
    out = [f"=== THREADS (top {len(entries)}) ===\n"]
    for e in entries:
        out.append("%-30s %9d %6.1f%%\n" % (e.name, e.samples, pct(e.samples, total_samples)))
    out.append("\n")
    return "".join(out)


def diff(report) -> str:
    if report.is_empty():
        return "no significant changes\n"

    out = []
    if report.regressions:
        out.append("REGRESSION\n")
        for e in report.regressions:
            out.append("  %-50s %5.1f%% -> %5.1f%%  (+%.1f%%)\n" % (e.name, e.before, e.after, e.delta))
    if report.improvements:
        out.append("IMPROVEMENT\n")
        for e in report.improvements:
            out.append("  %-50s %5.1f%% -> %5.1f%%  (%.1f%%)\n" % (e.name, e.before, e.after, e.delta))
    if report.new:
        out.append("NEW\n")
        for e in report.new:
            out.append("  %-50s %.1f%%\n" % (e.name, e.after))
    if report.gone:
        out.append("GONE\n")
        for e in report.gone:
            out.append("  %-50s %.1f%%\n" % (e.name, e.before))
    return "".join(out)


def drill_down_header(name: str, self_pct: float) -> str:
    return f"\n=== DRILL-DOWN: {name} (self={self_pct:.1f}%) ===\n"


def drill_down_lines(entries, total_samples: int) -> str:
    out = []
    for e in entries:
        out.append("%s:%-8d %8d %6.1f%%\n" % (e.name, e.line, e.samples, pct(e.samples, total_samples)))
    return "".join(out)


def collapsed_line(frames: Sequence[str], count: int, thread: str = "") -> str:
    prefix = f"[{thread}];" if thread else ""
    return f"{prefix}{';'.join(frames)} {count}\n"
