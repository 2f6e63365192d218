"""Collapsed-stack text reader ("frame;frame;frame count" per line)."""

from __future__ import annotations

import gzip
import re
import sys
from pathlib import Path
from typing import Iterable, TextIO

from ap_query.errors import InputError
from ap_query.model import Stack, StackFile

_THREAD_FRAME_RE = re.compile(r"^\[(.+?)(?:\s+tid=\d+)?\]$")
_ANNOTATED_FRAME_RE = re.compile(r"^(.+?):(\d+)(?:_\[[^\]]*\])?$")

STDIN_PATH = "-"


def split_collapsed_line(line: str) -> tuple[str, int]:
    """
    Split a collapsed line at its last space into (frames, count).

    Returns ("", 0) for lines that carry no positive integer count.
    """
    idx = line.rfind(" ")
    if idx < 1:
        return "", 0
    count_str = line[idx + 1:]
    if not (count_str.isascii() and count_str.isdigit()):
        return "", 0
    count = int(count_str)
    if count <= 0:
        return "", 0
    return line[:idx], count


def parse_annotated_frame(frame: str) -> tuple[str, int]:
    """Strip a ":LINE" or ":LINE_[x]" annotation, returning (name, line)."""
    match = _ANNOTATED_FRAME_RE.match(frame)
    if match is None:
        return frame, 0
    return match.group(1), int(match.group(2))


def parse_collapsed(lines: Iterable[str]) -> StackFile:
    """
    Parse collapsed text into a StackFile.

    A leading "[thread]" or "[thread tid=N]" frame sets the thread label.
    Identical frame/line/thread combinations are merged into one stack.
    """
    merged: dict[tuple[tuple[str, ...], tuple[int, ...], str], int] = {}
    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            continue
        frames_str, count = split_collapsed_line(line)
        if count == 0:
            continue

        parts = frames_str.split(";")
        thread = ""
        thread_match = _THREAD_FRAME_RE.match(parts[0])
        if thread_match is not None:
            thread = thread_match.group(1)
            parts = parts[1:]
        if not parts:
            continue

        annotated = [parse_annotated_frame(part) for part in parts]
        key = (
            tuple(name for name, _ in annotated),
            tuple(line_no for _, line_no in annotated),
            thread
        )
        merged[key] = merged.get(key, 0) + count

    return StackFile(tuple(
        Stack(frames, line_nos, count, thread)
        for (frames, line_nos, thread), count in merged.items()
    ))


def is_jfr_path(path: str) -> bool:
    lower = path.lower()
    return lower.endswith(".jfr") or lower.endswith(".jfr.gz")


def _open_text(path: str) -> TextIO:
    if path.endswith(".gz"):
        return gzip.open(path, "rt", encoding="utf-8", errors="replace")
    return open(path, "r", encoding="utf-8", errors="replace")


def read_profile(path: str, stdin: TextIO | None = None) -> StackFile:
    """
    Load a collapsed-stack profile from a file, a .gz file, or stdin ("-").

    Raises:
        InputError: the file cannot be read or is a JFR recording
    """
    if path == STDIN_PATH:
        return parse_collapsed(stdin if stdin is not None else sys.stdin)

    if is_jfr_path(path):
        raise InputError(
            f"{path}: JFR recordings are not supported; convert to collapsed text first"
        )
    if not Path(path).is_file():
        raise InputError(f"profile not found: {path}")

    try:
        with _open_text(path) as f:
            return parse_collapsed(f)
    except (OSError, EOFError) as exc:
        raise InputError(f"{path}: {exc}") from exc
