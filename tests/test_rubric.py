import pytest

from domain.services import rubric

CV_SCORES = {"technical_skills": 5, "experience_level": 4, "achievements": 4, "cultural_fit": 4}


def test_weights_sum_to_one():
    assert sum(rubric.CV_WEIGHTS.values()) == pytest.approx(1.0)
    assert sum(rubric.PROJECT_WEIGHTS.values()) == pytest.approx(1.0)


def test_model_value_close_to_rubric_is_kept():
    # rubric gives 4.35 * 0.2 = 0.87
    assert rubric.cv_match_rate(CV_SCORES, 0.86) == 0.86


def test_model_arithmetic_far_from_rubric_is_replaced():
    assert rubric.cv_match_rate(CV_SCORES, 0.4) == pytest.approx(0.87)
    assert rubric.cv_match_rate(CV_SCORES, None) == pytest.approx(0.87)


def test_incomplete_scores_fall_back_to_reported_value_when_in_range():
    partial = {"technical_skills": 5}
    assert rubric.cv_match_rate(partial, 0.6) == 0.6
    assert rubric.cv_match_rate(partial, 1.7) == 0.0
    assert rubric.cv_match_rate({}, None) == 0.0


def test_project_score_stays_in_rubric_range():
    low = {k: 1 for k in rubric.PROJECT_WEIGHTS}
    high = {k: 5 for k in rubric.PROJECT_WEIGHTS}
    assert rubric.project_score(low, None) == pytest.approx(1.0)
    assert rubric.project_score(high, 2.0) == pytest.approx(5.0)
    assert rubric.project_score({}, 3.2) == 3.2
