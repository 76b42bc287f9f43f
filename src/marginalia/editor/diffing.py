"""Token-level LCS alignment and inline diff rendering for suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

from .text import tokenize

KEPT = 0
DELETED = -1
INSERTED = 1

DiffOp = tuple[int, str]
SegmentKind = Literal["kept", "deleted", "inserted", "plain"]

_KIND_BY_TAG: dict[int, SegmentKind] = {KEPT: "kept", DELETED: "deleted", INSERTED: "inserted"}


def compute_lcs(a: Sequence[str], b: Sequence[str]) -> list[str]:
    """Return a longest common subsequence of the token sequences *a* and *b*.

    Backtracking prefers stepping back through *a* when both directions keep
    the same length, which keeps the output deterministic.
    """

    m, n = len(a), len(b)
    if not m or not n:
        return []
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        row, prev = dp[i], dp[i - 1]
        token = a[i - 1]
        for j in range(1, n + 1):
            if token == b[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = prev[j] if prev[j] >= row[j - 1] else row[j - 1]

    lcs: list[str] = []
    i, j = m, n
    while i > 0 and j > 0:
        if a[i - 1] == b[j - 1]:
            lcs.append(a[i - 1])
            i -= 1
            j -= 1
        elif dp[i - 1][j] >= dp[i][j - 1]:
            i -= 1
        else:
            j -= 1
    lcs.reverse()
    return lcs


def generate_diff(a: Sequence[str], b: Sequence[str], lcs: Sequence[str]) -> list[DiffOp]:
    """Walk *a* and *b* against *lcs* and emit ``(tag, token)`` operations.

    Before each common token, unmatched tokens of *a* are emitted as
    deletions and unmatched tokens of *b* as insertions. Leftovers are
    flushed in the same order once the LCS is exhausted.
    """

    diff: list[DiffOp] = []
    i = j = 0
    for common in lcs:
        while i < len(a) and a[i] != common:
            diff.append((DELETED, a[i]))
            i += 1
        while j < len(b) and b[j] != common:
            diff.append((INSERTED, b[j]))
            j += 1
        if i >= len(a) or j >= len(b):
            # Not a subsequence of both inputs; whatever remains is flushed below.
            break
        diff.append((KEPT, common))
        i += 1
        j += 1
    diff.extend((DELETED, token) for token in a[i:])
    diff.extend((INSERTED, token) for token in b[j:])
    return diff


def diff_texts(original: str, suggested: str) -> list[DiffOp]:
    """Tokenize both strings and return their token diff."""

    original_tokens = tokenize(original or "")
    suggested_tokens = tokenize(suggested or "")
    lcs = compute_lcs(original_tokens, suggested_tokens)
    return generate_diff(original_tokens, suggested_tokens, lcs)


@dataclass(slots=True, frozen=True)
class DiffSegment:
    """A run of diff output sharing one presentation style."""

    kind: SegmentKind
    text: str


def render_segments(diff: Iterable[DiffOp]) -> list[DiffSegment]:
    """Group diff operations into display segments.

    Whitespace-only insertions or deletions are shown as ``plain`` text and
    adjacent segments of the same kind are merged.
    """

    segments: list[DiffSegment] = []
    for tag, token in diff:
        kind = _KIND_BY_TAG.get(tag, "plain")
        if kind != "kept" and not token.strip():
            kind = "plain"
        if segments and segments[-1].kind == kind:
            segments[-1] = DiffSegment(kind=kind, text=segments[-1].text + token)
        else:
            segments.append(DiffSegment(kind=kind, text=token))
    return segments


def format_inline(segments: Iterable[DiffSegment]) -> str:
    """Render segments as ``[-deleted-]{+inserted+}`` markers for terminals."""

    parts: list[str] = []
    for segment in segments:
        if segment.kind == "deleted":
            parts.append(f"[-{segment.text}-]")
        elif segment.kind == "inserted":
            parts.append(f"{{+{segment.text}+}}")
        else:
            parts.append(segment.text)
    return "".join(parts)


__all__ = [
    "DELETED",
    "DiffOp",
    "DiffSegment",
    "INSERTED",
    "KEPT",
    "compute_lcs",
    "diff_texts",
    "format_inline",
    "generate_diff",
    "render_segments",
]
