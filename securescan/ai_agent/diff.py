"""
Positional unified diffs for AI-generated fixes.

Lines are compared index by index rather than by minimal edit distance, so
an inserted line shows up as a change to every line after it. That keeps the
output predictable for whole-file rewrites. ``apply_diff`` replays a diff
produced here and is used to check that a diff describes its fix exactly.
"""
import re
from typing import List, Tuple

CONTEXT_LINES = 3
# Runs separated by at most this many unchanged lines share a hunk, so
# context never overlaps between hunks and apply_diff can replay them in order
MERGE_GAP = 2 * CONTEXT_LINES

_HUNK_HEADER = re.compile(r"^@@ -(\d+),(\d+) \+(\d+),(\d+) @@$")


class DiffApplyError(ValueError):
    """Raised when a diff does not match the text it is applied to."""


def _changed_runs(old: List[str], new: List[str]) -> List[Tuple[int, int]]:
    """Return ``(start, end)`` index ranges of consecutive differing positions."""
    runs = []
    start = None
    total = max(len(old), len(new))
    for i in range(total):
        differs = i >= len(old) or i >= len(new) or old[i] != new[i]
        if differs and start is None:
            start = i
        elif not differs and start is not None:
            runs.append((start, i))
            start = None
    if start is not None:
        runs.append((start, total))
    return runs


def _group_runs(runs: List[Tuple[int, int]]) -> List[List[Tuple[int, int]]]:
    groups: List[List[Tuple[int, int]]] = []
    for run in runs:
        if groups and run[0] - groups[-1][-1][1] <= MERGE_GAP:
            groups[-1].append(run)
        else:
            groups.append([run])
    return groups


def _hunk_start(index: int, length: int) -> int:
    # 1-based; an empty side points at the line before it
    return index + 1 if length else index


def generate_diff(original: str, fixed: str, filename: str) -> str:
    """Build a unified diff turning ``original`` into ``fixed``."""
    old = original.split("\n")
    new = fixed.split("\n")
    total = max(len(old), len(new))

    output = [f"--- a/{filename}", f"+++ b/{filename}"]
    for group in _group_runs(_changed_runs(old, new)):
        first = max(0, group[0][0] - CONTEXT_LINES)
        last = min(total, group[-1][1] + CONTEXT_LINES)

        body = []
        position = first
        for run_start, run_end in group:
            body.extend(" " + old[i] for i in range(position, run_start))
            body.extend("-" + old[i] for i in range(run_start, min(run_end, len(old))))
            body.extend("+" + new[i] for i in range(run_start, min(run_end, len(new))))
            position = run_end
        body.extend(" " + old[i] for i in range(position, last))

        old_len = sum(1 for line in body if line[0] in " -")
        new_len = sum(1 for line in body if line[0] in " +")
        output.append(
            f"@@ -{_hunk_start(first, old_len)},{old_len} +{_hunk_start(first, new_len)},{new_len} @@"
        )
        output.extend(body)

    return "\n".join(output) + "\n"


def apply_diff(original: str, diff: str) -> str:
    """
    Apply a diff produced by :func:`generate_diff` to ``original``.

    Raises:
        DiffApplyError: If the diff is malformed or its context and removed
            lines don't match ``original``.
    """
    old = original.split("\n")
    lines = diff.split("\n")
    if len(lines) < 2 or not lines[0].startswith("--- ") or not lines[1].startswith("+++ "):
        raise DiffApplyError("Missing file header")

    result: List[str] = []
    cursor = 0
    i = 2
    while i < len(lines):
        header = lines[i]
        if header == "" and i == len(lines) - 1:
            break
        match = _HUNK_HEADER.match(header)
        if not match:
            raise DiffApplyError(f"Malformed hunk header at line {i + 1}")
        old_start, old_len, _new_start, new_len = (int(g) for g in match.groups())
        start = old_start - 1 if old_len else old_start
        if start < cursor or start > len(old):
            raise DiffApplyError("Hunk out of order")
        result.extend(old[cursor:start])
        cursor = start
        i += 1

        consumed_old = consumed_new = 0
        while consumed_old < old_len or consumed_new < new_len:
            if i >= len(lines) or not lines[i]:
                raise DiffApplyError("Truncated hunk")
            tag, text = lines[i][0], lines[i][1:]
            if tag in " -":
                if cursor >= len(old) or old[cursor] != text:
                    raise DiffApplyError(f"Context mismatch at original line {cursor + 1}")
                cursor += 1
                consumed_old += 1
            if tag in " +":
                result.append(text)
                consumed_new += 1
            if tag not in " -+":
                raise DiffApplyError(f"Unexpected line prefix at line {i + 1}")
            i += 1
        if consumed_old != old_len or consumed_new != new_len:
            raise DiffApplyError("Hunk length mismatch")

    result.extend(old[cursor:])
    return "\n".join(result)
