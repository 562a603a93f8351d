"""Tests for placement candidate ranking and the attempt loop."""

from unittest.mock import MagicMock

import pytest

from patchpilot.errors import PlacementExhausted
from patchpilot.models import LineKind, LineRecord
from patchpilot.placement import WHOLE_PR, attempt_placement, resolve, resolve_patch

ADDED = LineKind.ADDED
MODIFIED = LineKind.MODIFIED
CONTEXT = LineKind.CONTEXT


def records(*pairs):
    return [LineRecord(line, kind) for line, kind in pairs]


def test_candidates_are_grouped_by_tier():
    candidates = resolve(records((5, CONTEXT), (4, ADDED), (3, MODIFIED), (2, ADDED), (1, CONTEXT)))
    assert [(c.line_number, c.kind, c.tier) for c in candidates] == [
        (2, ADDED, 1),
        (4, ADDED, 1),
        (3, MODIFIED, 2),
        (1, CONTEXT, 3),
        (5, CONTEXT, 3),
        (None, None, 4),
    ]


def test_context_only_file():
    candidates = resolve(records((10, CONTEXT), (11, CONTEXT)))
    assert not [c for c in candidates if c.tier in (1, 2)]
    assert candidates[0].tier == 3
    assert candidates[-1] == WHOLE_PR


def test_no_records_leaves_only_sentinel():
    assert resolve([]) == [WHOLE_PR]
    assert WHOLE_PR.is_sentinel


def test_resolve_patch_uses_parsed_records():
    candidates = resolve_patch("@@ -1,2 +1,3 @@\n a\n-b\n+c\n+d")
    assert [(c.line_number, c.tier) for c in candidates] == [(3, 1), (2, 2), (1, 3), (None, 4)]


def test_resolve_patch_falls_back_to_header_start():
    candidates = resolve_patch("@@ -5,0 +6,0 @@")
    assert [(c.line_number, c.kind, c.tier) for c in candidates] == [(6, CONTEXT, 3), (None, None, 4)]


def test_resolve_patch_without_hunks():
    assert resolve_patch("") == [WHOLE_PR]


def test_stops_at_first_accepted_candidate():
    post = MagicMock(side_effect=[RuntimeError("line not in diff"), {"id": 1}])
    candidates = resolve(records((1, CONTEXT), (2, ADDED), (3, ADDED)))

    outcome = attempt_placement("a.py", candidates, post)

    assert outcome.anchored
    assert outcome.candidate.line_number == 3
    assert outcome.attempts == 2
    assert post.call_count == 2


def test_falsy_result_counts_as_rejection():
    post = MagicMock(side_effect=[None, True])
    outcome = attempt_placement("a.py", resolve(records((1, ADDED), (2, MODIFIED))), post)
    assert outcome.candidate.kind is MODIFIED


def test_exhausted_candidates_fall_back_to_whole_pr():
    post = MagicMock(side_effect=RuntimeError("nope"))
    candidates = resolve(records((1, ADDED), (2, MODIFIED), (3, CONTEXT)))

    outcome = attempt_placement("a.py", candidates, post)

    assert not outcome.anchored
    assert outcome.candidate == WHOLE_PR
    assert outcome.attempts == 3
    assert all(call.args[0].line_number is not None for call in post.call_args_list)


def test_strict_mode_raises_when_exhausted():
    post = MagicMock(return_value=False)
    with pytest.raises(PlacementExhausted) as exc_info:
        attempt_placement("a.py", resolve(records((1, ADDED))), post, strict=True)
    assert exc_info.value.attempts == 1
    assert exc_info.value.filename == "a.py"
