"""Normalized in-memory representation of one profiling run."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Stack:
    """One weighted root-to-leaf call path.

    Args:
        frames: Frame identifiers, root first and leaf last
        lines: Source line per frame, parallel to frames (0 = unknown)
        count: Number of identical samples collapsed into this stack
        thread: Thread label, empty when the input has none
    """

    frames: tuple[str, ...]
    lines: tuple[int, ...]
    count: int
    thread: str = ""

    def __post_init__(self):
        # Accept lists from callers but store immutable tuples.
        object.__setattr__(self, "frames", tuple(self.frames))
        object.__setattr__(self, "lines", tuple(self.lines))
        if not self.frames:
            raise ValueError("stack must have at least one frame")
        if len(self.frames) != len(self.lines):
            raise ValueError(
                f"frames/lines length mismatch: {len(self.frames)} != {len(self.lines)}"
            )
        if self.count < 1:
            raise ValueError(f"stack count must be positive, got {self.count}")

    @property
    def leaf(self) -> str:
        return self.frames[-1]


@dataclass(frozen=True)
class StackFile:
    """All stacks of one profile plus their summed weight."""

    stacks: tuple[Stack, ...] = ()
    total_samples: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "stacks", tuple(self.stacks))
        object.__setattr__(self, "total_samples", sum(st.count for st in self.stacks))

    def __len__(self) -> int:
        return len(self.stacks)

    def __iter__(self):
        return iter(self.stacks)

    def filter_by_thread(self, thread: str | None) -> "StackFile":
        """
        Keep only stacks whose thread label contains the given substring.

        Returns a new collection with a recomputed total; an empty filter
        returns this collection unchanged.
        """
        if not thread:
            return self
        return StackFile(tuple(st for st in self.stacks if thread in st.thread))
