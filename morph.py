"""Move validation: can one word reach another in a single morph step."""

from __future__ import annotations

from models import MorphMove, MoveKind
from utils import normalize_word


def _differing_indices(a: str, b: str, limit: int = 3) -> list[int]:
    diff: list[int] = []
    for idx, (left, right) in enumerate(zip(a, b)):
        if left != right:
            diff.append(idx)
            if len(diff) >= limit:
                break
    return diff


def _single_skip_match(longer: str, shorter: str) -> bool:
    """
    Two-pointer scan: can `shorter` be made by removing one letter of `longer`.

    The first mismatch consumes the only skip. Within a run of repeated
    letters every removal position gives the same word, so the greedy
    choice never loses a valid alignment.
    """
    i = j = 0
    skipped = False
    while i < len(longer) and j < len(shorter):
        if longer[i] == shorter[j]:
            i += 1
            j += 1
        elif not skipped:
            skipped = True
            i += 1
        else:
            return False
    return True


def classify_move(a: str, b: str) -> MorphMove:
    """Classify the step from `a` to `b`; the kind is None when it is not a legal move."""
    a = normalize_word(a)
    b = normalize_word(b)
    if a == b:
        return MorphMove(a, b, None)

    if len(a) == len(b):
        diff = _differing_indices(a, b)
        if len(diff) == 1:
            return MorphMove(a, b, MoveKind.SUBSTITUTION)
        if len(diff) == 2:
            i, j = diff
            swapped = list(a)
            swapped[i], swapped[j] = swapped[j], swapped[i]
            if "".join(swapped) == b:
                return MorphMove(a, b, MoveKind.TRANSPOSITION)
        return MorphMove(a, b, None)

    if len(b) == len(a) + 1:
        kind = MoveKind.INSERTION if _single_skip_match(b, a) else None
        return MorphMove(a, b, kind)

    if len(b) == len(a) - 1:
        kind = MoveKind.DELETION if _single_skip_match(a, b) else None
        return MorphMove(a, b, kind)

    return MorphMove(a, b, None)


def is_one_morph(a: str, b: str) -> bool:
    """
    True iff `b` is reachable from `a` in one move.

    A move changes one letter, swaps any two letters, adds one letter, or
    drops one letter. The same word is never a move.
    """
    return classify_move(a, b).valid
