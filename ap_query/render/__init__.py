"""Plain-text rendering of query results."""

from ap_query.render.text import (
    collapsed_line,
    diff,
    drill_down_header,
    drill_down_lines,
    hot_tables,
    lines_table,
    no_match,
    threads_section,
    threads_table,
    trace,
    tree
)

__all__ = [
    "collapsed_line",
    "diff",
    "drill_down_header",
    "drill_down_lines",
    "hot_tables",
    "lines_table",
    "no_match",
    "threads_section",
    "threads_table",
    "trace",
    "tree"
]
