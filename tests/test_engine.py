import itertools
from decimal import Decimal

import pytest

from engine import (
    BOTH, CANCER, CANCER_WEIGHTS, GLAUCOMA, GLAUCOMA_WEIGHTS, HIGHER_RISK_CHOICES, INVALID_SCORE,
    NONE, QUESTION_IDS, TIERS, InvalidInputError, RiskScore, _round_and_clamp,
    calculate_cancer_score, calculate_glaucoma_score, classify, compute_assessment,
    get_cancer_recommendations, get_glaucoma_recommendations, get_overall_recommendations,
    get_risk_level_name, normalize_answer, normalize_answers,
)


def answers(*yes):
    return {qid: qid in yes for qid in QUESTION_IDS}


# ----- normalizer -----
@pytest.mark.parametrize("value,expected", [
    (True, True), (False, False),
    ("Yes", True), (" yes ", True), ("TRUE", True), ("1", True),
    ("No", False), ("y", False), ("", False), ("0", False),
    (1, True), (1.0, True), (0, False), (2, False), (0.5, False),
    (None, False), ([1], False), (object(), False),
])
def test_normalize_answer(value, expected):
    assert normalize_answer(value) is expected


def test_normalize_answers_fills_missing_and_drops_unknown():
    record = normalize_answers({"elevatedIOP": "Yes", "shoeSize": True})
    assert set(record) == set(QUESTION_IDS)
    assert record["elevatedIOP"] is True
    assert all(v is False for k, v in record.items() if k != "elevatedIOP")
    assert "shoeSize" not in record


def test_normalize_answers_is_idempotent_and_read_only():
    record = normalize_answers({"diabetes": 1, "regularScreening": "no"})
    assert normalize_answers(record) == record
    with pytest.raises(TypeError):
        record["diabetes"] = False


def test_missing_answers_mapping_is_rejected():
    with pytest.raises(InvalidInputError):
        compute_assessment(None)
    with pytest.raises(InvalidInputError):
        compute_assessment(["elevatedIOP"])


def test_empty_mapping_is_scored_not_rejected():
    assert compute_assessment({}) == compute_assessment(answers())


# ----- score calculator -----
def test_all_answers_no():
    result = compute_assessment(answers())
    assert result.glaucoma_score.score == 0
    # not being screened still adds a point to the cancer sum
    assert result.cancer_score.raw_value == 1.0
    assert result.cancer_score.score == 1
    assert result.higher_risk_disease == CANCER
    assert "Secondary concern" not in result.recommendations


def test_only_screening_gives_no_risk():
    result = compute_assessment(answers("regularScreening"))
    assert result.glaucoma_score.score == 0
    assert result.cancer_score.raw_value == -1.0
    assert result.cancer_score.score == 0
    assert result.higher_risk_disease == NONE
    assert result.recommendations == "Overall risk for both conditions is low. Maintain regular health check-ups."
    assert result.glaucoma_recommendations == get_glaucoma_recommendations(0)
    assert result.cancer_recommendations == get_cancer_recommendations(0)


def test_elevated_iop_alone_is_low_risk_boundary():
    score = calculate_glaucoma_score(normalize_answers(answers("elevatedIOP")))
    assert score.raw_value == 2.0
    assert score.score == 2
    assert get_risk_level_name(score.score, GLAUCOMA) == "Low risk"


def test_three_eye_symptoms_are_high_risk():
    score = calculate_glaucoma_score(normalize_answers(answers("elevatedIOP", "poorVision", "suddenEyePain")))
    assert score.raw_value == 5.0
    assert score.score == 5
    assert get_risk_level_name(score.score, GLAUCOMA) == "High risk"


def test_weight_loss_with_screening_is_low_risk():
    score = calculate_cancer_score(normalize_answers(answers("unexplainedWeightLoss", "regularScreening")))
    assert score.raw_value == 2.0
    assert score.score == 2
    assert get_risk_level_name(score.score, CANCER) == "Low risk"


def test_weight_loss_without_screening_is_moderate_risk():
    score = calculate_cancer_score(normalize_answers(answers("unexplainedWeightLoss")))
    assert score.raw_value == 4.0
    assert score.score == 4
    assert get_risk_level_name(score.score, CANCER) == "Moderate risk"


def test_half_rounds_up():
    # 2.0 + 0.5 = 2.5 -> 3, not banker's rounding to 2
    score = calculate_glaucoma_score(normalize_answers(answers("elevatedIOP", "ethnicityRisk")))
    assert score.raw_value == 2.5
    assert score.score == 3


def test_diabetes_counts_for_both_conditions():
    record = normalize_answers(answers("diabetes"))
    assert calculate_glaucoma_score(record).raw_value == 0.91
    assert calculate_glaucoma_score(record).score == 1
    assert calculate_cancer_score(record).raw_value == 2.5
    assert calculate_cancer_score(record).score == 3


def test_eye_injury_carries_no_weight():
    assert compute_assessment(answers("eyeInjury")) == compute_assessment(answers())


def test_everything_yes():
    result = compute_assessment(answers(*QUESTION_IDS))
    assert result.glaucoma_score.raw_value == pytest.approx(9.51)
    assert result.glaucoma_score.score == 10
    assert result.cancer_score.score == 8
    assert result.higher_risk_disease == GLAUCOMA
    assert result.glaucoma_tier == "Critical / Acute risk"
    assert result.cancer_tier == "High risk"


def test_round_and_clamp():
    assert _round_and_clamp(Decimal("12.3")) == 10
    assert _round_and_clamp(Decimal("-1")) == 0
    assert _round_and_clamp(Decimal("4.49")) == 4
    assert _round_and_clamp(Decimal("4.5")) == 5


def test_weight_tables_are_read_only():
    with pytest.raises(TypeError):
        GLAUCOMA_WEIGHTS["elevatedIOP"] = 0
    with pytest.raises(TypeError):
        CANCER_WEIGHTS["diabetes"] = 0


@pytest.mark.parametrize("base", [(), ("regularScreening",), ("diabetes", "ageOver40", "tobaccoOrAlcohol")])
def test_monotonic_in_each_risk_question(base):
    for weights, calc in ((GLAUCOMA_WEIGHTS, calculate_glaucoma_score), (CANCER_WEIGHTS, calculate_cancer_score)):
        for question in weights:
            without = calc(normalize_answers(answers(*(q for q in base if q != question))))
            with_q = calc(normalize_answers(answers(question, *base)))
            assert with_q.raw_value >= without.raw_value
            assert with_q.score >= without.score


@pytest.mark.parametrize("base", [(), ("unexplainedWeightLoss",), tuple(CANCER_WEIGHTS)])
def test_screening_lowers_cancer_sum_by_two(base):
    unscreened = calculate_cancer_score(normalize_answers(answers(*base)))
    screened = calculate_cancer_score(normalize_answers(answers("regularScreening", *base)))
    assert unscreened.raw_value - screened.raw_value == pytest.approx(2.0)


def test_every_combination_is_bounded_deterministic_and_consistent():
    for bits in itertools.product((False, True), repeat=len(QUESTION_IDS)):
        raw = dict(zip(QUESTION_IDS, bits))
        result = compute_assessment(raw)
        assert result == compute_assessment(raw)

        g, c = result.glaucoma_score, result.cancer_score
        assert 0 <= g.score <= 10 and 0 <= c.score <= 10
        assert g.risk_percentage == g.score * 10
        assert c.risk_percentage == c.score * 10

        assert result.higher_risk_disease in HIGHER_RISK_CHOICES
        assert (result.higher_risk_disease == BOTH) == (g.risk_percentage == c.risk_percentage > 0)
        assert (result.higher_risk_disease == NONE) == (g.risk_percentage == c.risk_percentage == 0)


# ----- tiers -----
@pytest.mark.parametrize("condition", [GLAUCOMA, CANCER])
@pytest.mark.parametrize("score", range(0, 11))
def test_each_integer_score_has_exactly_one_tier(condition, score):
    assert sum(tier.contains(score) for tier in TIERS[condition]) == 1


@pytest.mark.parametrize("condition", [GLAUCOMA, CANCER])
def test_tiers_are_contiguous_and_cover_zero_to_ten(condition):
    tiers = TIERS[condition]
    assert tiers[0].lower == 0 and tiers[0].lower_inclusive
    assert tiers[-1].upper == 10 and tiers[-1].upper_inclusive
    for left, right in zip(tiers, tiers[1:]):
        assert left.upper == right.lower
        assert left.upper_inclusive != right.lower_inclusive


@pytest.mark.parametrize("score,name", [
    (0, "Low risk"), (2, "Low risk"), (2.01, "Moderate risk"), (4.99, "Moderate risk"),
    (5, "High risk"), (7.99, "High risk"), (8, "Critical / Acute risk"), (10, "Critical / Acute risk"),
])
def test_glaucoma_tier_boundaries(score, name):
    assert get_risk_level_name(score, GLAUCOMA) == name


@pytest.mark.parametrize("score,name", [
    (0, "Low risk"), (2, "Low risk"), (3, "Moderate risk"), (4, "Moderate risk"),
    (5, "Localized disease likely"), (6, "Localized disease likely"),
    (7, "High risk"), (8, "High risk"), (9, "Very high risk"), (10, "Very high risk"),
])
def test_cancer_tier_boundaries(score, name):
    assert get_risk_level_name(score, CANCER) == name


def test_cancer_treatment_themes():
    themes = [classify(s, CANCER).treatment for s in (1, 3, 5, 7, 9)]
    assert themes == ["Targeted therapy", "Immunotherapy", "Radiation therapy", "Chemotherapy", "Surgery + chemo/radiation"]


@pytest.mark.parametrize("condition", [GLAUCOMA, CANCER])
def test_recommendation_text_does_not_repeat_treatment_theme(condition):
    # the UI shows tier.treatment on its own line
    for tier in TIERS[condition]:
        assert "Treatment pathway" not in tier.recommendation
        assert tier.treatment not in tier.recommendation


@pytest.mark.parametrize("score", [-1, 10.5, 11, float("nan")])
def test_out_of_range_score_gives_sentinel(score):
    assert classify(score, GLAUCOMA) is None
    assert get_glaucoma_recommendations(score) == INVALID_SCORE
    assert get_cancer_recommendations(score) == INVALID_SCORE
    assert get_risk_level_name(score, "Cancer") == INVALID_SCORE


def test_unknown_condition_has_no_tier():
    assert classify(5, "stroke") is None
    assert get_risk_level_name(5, "stroke") == INVALID_SCORE
    assert get_risk_level_name(5, "GLAUCOMA") == "High risk"


# ----- composer -----
def test_glaucoma_primary_with_cancer_secondary():
    out = get_overall_recommendations(RiskScore(GLAUCOMA, 7.0, 7), RiskScore(CANCER, 3.0, 3))
    assert out["higher_risk_disease"] == GLAUCOMA
    first, second = out["recommendations"].split("\n")
    assert first == f"Primary concern: Glaucoma (70% risk). {get_glaucoma_recommendations(7)}"
    assert second == f"Secondary concern: Cancer (30% risk). {get_cancer_recommendations(3)}"


def test_cancer_primary_without_glaucoma_line_when_glaucoma_is_zero():
    out = get_overall_recommendations(RiskScore(GLAUCOMA, 0.0, 0), RiskScore(CANCER, 9.0, 9))
    assert out["higher_risk_disease"] == CANCER
    assert out["recommendations"] == f"Primary concern: Cancer (90% risk). {get_cancer_recommendations(9)}"
    assert out["glaucoma_recommendations"] == get_glaucoma_recommendations(0)


def test_equal_nonzero_risk_lists_both():
    result = compute_assessment(answers(
        "elevatedIOP", "poorVision", "suddenEyePain",
        "unexplainedWeightLoss", "familyHistoryCancer", "tobaccoOrAlcohol", "regularScreening",
    ))
    assert result.glaucoma_score.score == 5
    assert result.cancer_score.score == 5
    assert result.higher_risk_disease == BOTH
    assert result.recommendations.startswith("Equal risk for Glaucoma (50%) and Cancer (50%).")
    assert result.glaucoma_recommendations in result.recommendations
    assert result.cancer_recommendations in result.recommendations
    assert "Primary concern" not in result.recommendations


def test_to_record_layout():
    record = compute_assessment(answers("elevatedIOP", "regularScreening")).to_record()
    assert record == {
        "glaucomaScore": 2,
        "cancerScore": 0,
        "glaucomaRiskPercentage": 20,
        "cancerRiskPercentage": 0,
        "glaucomaRiskLevel": "Low risk",
        "cancerRiskLevel": "Low risk",
        "higherRiskDisease": GLAUCOMA,
        "recommendations": f"Primary concern: Glaucoma (20% risk). {get_glaucoma_recommendations(2)}",
        "glaucomaRecommendations": get_glaucoma_recommendations(2),
        "cancerRecommendations": get_cancer_recommendations(0),
    }
