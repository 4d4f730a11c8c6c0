"""
Tests for the scoring configuration and the pure scoring functions.
"""
import pytest
from types import SimpleNamespace

from app.core.scoring_config import (
    OVERALL_WEIGHTS,
    SCORE_DIMENSIONS,
    TRANSCRIPT_SCORE_WEIGHTS,
    get_overall_weight,
    clamp_score,
)
from app.services.feedback_service import compute_overall_score, compute_transcript_score


def _turn(role, confidence=None):
    return SimpleNamespace(role=role, confidence=confidence)


def test_weights_cover_dimensions_and_sum_to_one():
    assert set(OVERALL_WEIGHTS) == set(SCORE_DIMENSIONS)
    assert sum(OVERALL_WEIGHTS.values()) == pytest.approx(1.0)
    assert sum(TRANSCRIPT_SCORE_WEIGHTS.values()) == pytest.approx(1.0)


def test_get_overall_weight():
    assert get_overall_weight("clarity") == 0.30
    assert get_overall_weight("unknown") == 0.0


def test_clamp_score():
    assert clamp_score(-5) == 0.0
    assert clamp_score(42.5) == 42.5
    assert clamp_score(180) == 100.0


def test_overall_score_formula():
    # 0.3*80 + 0.2*60 + 0.3*70 + 0.2*50
    assert compute_overall_score(80, 60, 70, 50) == 67.0
    assert compute_overall_score(100, 100, 100, 100) == 100.0
    assert compute_overall_score(0, 0, 0, 0) == 0.0


def test_overall_score_is_deterministic():
    scores = (73.33, 41.9, 88.12, 12.5)
    assert compute_overall_score(*scores) == compute_overall_score(*scores)
    assert compute_overall_score(*scores) == round(
        0.30 * 73.33 + 0.20 * 41.9 + 0.30 * 88.12 + 0.20 * 12.5, 2
    )


def test_overall_score_custom_weights():
    weights = {"clarity": 1.0, "conciseness": 0.0, "technical_depth": 0.0, "star_method": 0.0}
    assert compute_overall_score(55, 10, 10, 10, weights=weights) == 55.0


def test_transcript_score_empty():
    assert compute_transcript_score([]) == 0.0


def test_transcript_score_components():
    turns = [
        _turn("interviewer"),
        _turn("candidate", 0.9),
        _turn("interviewer"),
        _turn("candidate"),  # no STT confidence -> counted as 1.0
    ]
    # coverage 2/6, answer rate 1.0, confidence 0.95
    expected = round(100 * (0.4 * (2 / 6) + 0.4 * 1.0 + 0.2 * 0.95), 2)
    assert compute_transcript_score(turns) == expected


def test_transcript_score_unanswered_questions():
    turns = [_turn("interviewer"), _turn("interviewer"), _turn("candidate", 1.0), _turn("interviewer")]
    # one of three questions answered
    expected = round(100 * (0.4 * (1 / 6) + 0.4 * (1 / 3) + 0.2 * 1.0), 2)
    assert compute_transcript_score(turns) == expected


def test_transcript_score_caps_at_full_coverage():
    turns = []
    for _ in range(10):
        turns += [_turn("interviewer"), _turn("candidate", 1.0)]
    assert compute_transcript_score(turns) == 100.0
