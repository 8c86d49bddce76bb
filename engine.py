# engine.py
"""
Risk scoring and recommendation engine for the diabetic glaucoma / cancer screener.
- Answers are coerced to strict booleans in one place (normalize_answer); missing -> False.
- Two weighted-rule formulas produce integer scores, rounded half-up and clamped to 0-10.
- Each score maps to a RiskTier carrying recommendation text, a treatment theme and a colour.
- Pure functions only: no I/O and no logging.
NOTE: Screening aid only. It is not a diagnostic tool and has no clinical validation.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from numbers import Number
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class InvalidInputError(ValueError):
    """Raised when there is no answers mapping to score at all."""


GLAUCOMA = "glaucoma"
CANCER = "cancer"
BOTH = "both"
NONE = "none"
HIGHER_RISK_CHOICES = (GLAUCOMA, CANCER, BOTH, NONE)

MIN_SCORE = 0
MAX_SCORE = 10
INVALID_SCORE = "Invalid score."


# ---------- Question catalogue ----------
@dataclass(frozen=True)
class Question:
    id: str
    group: str      # "glaucoma", "cancer" or "shared"
    prompt: str     # wording shown on the questionnaire


QUESTIONS: List[Question] = [
    # Glaucoma
    Question("elevatedIOP", GLAUCOMA, "Have you been told your eye pressure (IOP) is elevated?"),
    Question("familyHistoryGlaucoma", GLAUCOMA, "Does anyone in your family have glaucoma?"),
    Question("suddenEyePain", GLAUCOMA, "Do you experience sudden eye pain or redness?"),
    Question("ethnicityRisk", GLAUCOMA, "Are you of African, Hispanic or Asian descent?"),
    Question("ageOver40", GLAUCOMA, "Are you over 40 years old?"),
    Question("steroidUse", GLAUCOMA, "Do you use steroid medication (drops, inhalers or tablets)?"),
    Question("eyeInjury", GLAUCOMA, "Have you ever had a serious eye injury?"),
    Question("poorVision", GLAUCOMA, "Have you noticed loss of side (peripheral) vision?"),
    Question("halosOrTunnelVision", GLAUCOMA, "Do you see halos around lights or have tunnel vision?"),
    # Shared
    Question("diabetes", "shared", "Have you been diagnosed with diabetes?"),
    # Cancer
    Question("unexplainedWeightLoss", CANCER, "Have you had unexplained weight loss recently?"),
    Question("familyHistoryCancer", CANCER, "Does anyone in your family have a history of cancer?"),
    Question("tobaccoOrAlcohol", CANCER, "Do you use tobacco or drink alcohol regularly?"),
    Question("highRiskEnvironment", CANCER, "Are you exposed to chemicals, radiation or pollution at work or home?"),
    Question("regularScreening", CANCER, "Do you attend regular cancer screenings?"),
]

QUESTION_IDS: Tuple[str, ...] = tuple(q.id for q in QUESTIONS)


# ---------- Input normalizer ----------
def normalize_answer(value: Any) -> bool:
    """Interpret a form, spreadsheet or API answer as a strict yes/no."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("yes", "true", "1")
    if isinstance(value, Number):
        return value == 1
    return False


def normalize_answers(answers: Optional[Mapping[str, Any]]) -> Mapping[str, bool]:
    """
    Build the canonical answer record: every known question present and boolean.

    Unknown keys are dropped and unanswered questions count as "No". The result
    is read-only, and normalizing an already normalized record returns an equal one.
    Raises InvalidInputError when `answers` is missing or is not a mapping.
    """
    if answers is None:
        raise InvalidInputError("answers mapping is required")
    if not isinstance(answers, Mapping):
        raise InvalidInputError(f"answers must be a mapping, got {type(answers).__name__}")
    return MappingProxyType({qid: normalize_answer(answers.get(qid)) for qid in QUESTION_IDS})


# ---------- Score calculator ----------
# Weights add up to more than 10; clamping enforces the ceiling.
GLAUCOMA_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "elevatedIOP": 2.0,
    "poorVision": 1.5,              # peripheral vision loss
    "suddenEyePain": 1.5,
    "familyHistoryGlaucoma": 1.0,
    "halosOrTunnelVision": 1.0,
    "steroidUse": 0.8,
    "ethnicityRisk": 0.5,
    "diabetes": 0.91,
    "ageOver40": 0.3,
})

CANCER_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "unexplainedWeightLoss": 3.0,
    "familyHistoryCancer": 1.5,
    "tobaccoOrAlcohol": 1.5,
    "highRiskEnvironment": 1.5,
    "diabetes": 1.5,
})

# Regular screening is protective: it lowers the cancer sum when affirmed.
SCREENING_QUESTION = "regularScreening"
SCREENING_CREDIT = -1.0
NO_SCREENING_PENALTY = 1.0


@dataclass(frozen=True)
class RiskScore:
    condition: str
    raw_value: float    # weighted sum before rounding and clamping
    score: int          # 0..10

    @property
    def risk_percentage(self) -> int:
        return self.score * 10


def _weighted_sum(record: Mapping[str, bool], weights: Mapping[str, float]) -> Decimal:
    # Decimal keeps exact halves exact, so 2.5 always rounds to 3.
    return sum((Decimal(str(w)) for q, w in weights.items() if record.get(q) is True), Decimal(0))


def _round_and_clamp(total: Decimal) -> int:
    rounded = int(total.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(MIN_SCORE, min(rounded, MAX_SCORE))


def calculate_glaucoma_score(record: Mapping[str, bool]) -> RiskScore:
    total = _weighted_sum(record, GLAUCOMA_WEIGHTS)
    return RiskScore(GLAUCOMA, float(total), _round_and_clamp(total))


def calculate_cancer_score(record: Mapping[str, bool]) -> RiskScore:
    total = _weighted_sum(record, CANCER_WEIGHTS)
    if record.get(SCREENING_QUESTION) is True:
        total += Decimal(str(SCREENING_CREDIT))
    else:
        total += Decimal(str(NO_SCREENING_PENALTY))
    return RiskScore(CANCER, float(total), _round_and_clamp(total))


def calculate_risk(record: Mapping[str, bool]) -> Tuple[RiskScore, RiskScore]:
    """Score both conditions from a normalized answer record."""
    return calculate_glaucoma_score(record), calculate_cancer_score(record)


# ---------- Risk tiers ----------
@dataclass(frozen=True)
class RiskTier:
    condition: str
    name: str
    lower: float
    upper: float
    recommendation: str
    treatment: str                  # treatment theme for this band
    color: str                      # hex colour used by the UI
    lower_inclusive: bool = True
    upper_inclusive: bool = False

    def contains(self, score: float) -> bool:
        above = score >= self.lower if self.lower_inclusive else score > self.lower
        below = score <= self.upper if self.upper_inclusive else score < self.upper
        return above and below


def make_glaucoma_tiers() -> List[RiskTier]:
    return [
        RiskTier(
            GLAUCOMA, "Low risk", 0, 2,
            recommendation="Your glaucoma risk is low. Regular eye check-ups are recommended, "
                           "along with a healthy lifestyle and good blood sugar control.",
            treatment="Routine monitoring and lifestyle advice",
            color="#16a34a",
            upper_inclusive=True,
        ),
        RiskTier(
            GLAUCOMA, "Moderate risk", 2, 5,
            recommendation="Your glaucoma risk is moderate. Consider seeing an eye specialist; "
                           "pressure-lowering eye drops or laser therapy may be discussed.",
            treatment="Eye drops, laser therapy",
            color="#ca8a04",
            lower_inclusive=False,
        ),
        RiskTier(
            GLAUCOMA, "High risk", 5, 8,
            recommendation="Your glaucoma risk is high. Please consult an ophthalmologist soon; "
                           "surgery or combination treatments may be needed.",
            treatment="Surgery or combination treatments",
            color="#ea580c",
        ),
        RiskTier(
            GLAUCOMA, "Critical / Acute risk", 8, 10,
            recommendation="Your glaucoma risk is very high. Seek immediate medical attention; "
                           "urgent laser treatment or IOP-lowering medication may be required.",
            treatment="Immediate intervention: laser or IOP-lowering medication",
            color="#dc2626",
            upper_inclusive=True,
        ),
    ]


def make_cancer_tiers() -> List[RiskTier]:
    return [
        RiskTier(
            CANCER, "Low risk", 0, 3,
            recommendation="Your cancer risk is low. Continue with regular check-ups.",
            treatment="Targeted therapy",
            color="#059669",
        ),
        RiskTier(
            CANCER, "Moderate risk", 3, 5,
            recommendation="Your cancer risk is moderate. Consider consulting a doctor for further evaluation.",
            treatment="Immunotherapy",
            color="#16a34a",
        ),
        RiskTier(
            CANCER, "Localized disease likely", 5, 7,
            recommendation="Your cancer risk is high. Please consult a doctor as soon as possible.",
            treatment="Radiation therapy",
            color="#ca8a04",
        ),
        RiskTier(
            CANCER, "High risk", 7, 9,
            recommendation="Your cancer risk is very high. Seek medical attention immediately.",
            treatment="Chemotherapy",
            color="#ea580c",
        ),
        RiskTier(
            CANCER, "Very high risk", 9, 10,
            recommendation="Your cancer risk is extremely high. Urgent medical consultation is necessary.",
            treatment="Surgery + chemo/radiation",
            color="#dc2626",
            upper_inclusive=True,
        ),
    ]


TIERS: Mapping[str, Tuple[RiskTier, ...]] = MappingProxyType({
    GLAUCOMA: tuple(make_glaucoma_tiers()),
    CANCER: tuple(make_cancer_tiers()),
})


def classify(score: float, condition: str) -> Optional[RiskTier]:
    """Return the tier containing `score`, or None for an unknown condition or out-of-range score."""
    for tier in TIERS.get(condition.lower(), ()):
        if tier.contains(score):
            return tier
    return None


def get_glaucoma_recommendations(score: float) -> str:
    tier = classify(score, GLAUCOMA)
    return tier.recommendation if tier else INVALID_SCORE


def get_cancer_recommendations(score: float) -> str:
    tier = classify(score, CANCER)
    return tier.recommendation if tier else INVALID_SCORE


def get_risk_level_name(score: float, condition: str) -> str:
    """Tier name for a score, or the invalid-score sentinel for an unknown condition or out-of-range score."""
    tier = classify(score, condition)
    return tier.name if tier else INVALID_SCORE


# ---------- Recommendation composer ----------
def get_overall_recommendations(glaucoma: RiskScore, cancer: RiskScore) -> Dict[str, str]:
    """
    Decide which condition is the primary concern and merge the narratives.

    Returns a dict with higher_risk_disease, recommendations,
    glaucoma_recommendations and cancer_recommendations.
    """
    g_pct = glaucoma.risk_percentage
    c_pct = cancer.risk_percentage
    glaucoma_rec = get_glaucoma_recommendations(glaucoma.score)
    cancer_rec = get_cancer_recommendations(cancer.score)

    if g_pct > c_pct:
        higher = GLAUCOMA
        lines = [f"Primary concern: Glaucoma ({g_pct}% risk). {glaucoma_rec}"]
        if cancer.score > 0:
            lines.append(f"Secondary concern: Cancer ({c_pct}% risk). {cancer_rec}")
    elif c_pct > g_pct:
        higher = CANCER
        lines = [f"Primary concern: Cancer ({c_pct}% risk). {cancer_rec}"]
        if glaucoma.score > 0:
            lines.append(f"Secondary concern: Glaucoma ({g_pct}% risk). {glaucoma_rec}")
    elif g_pct > 0:
        higher = BOTH
        lines = [
            f"Equal risk for Glaucoma ({g_pct}%) and Cancer ({c_pct}%).",
            f"Glaucoma: {glaucoma_rec}",
            f"Cancer: {cancer_rec}",
        ]
    else:
        higher = NONE
        lines = ["Overall risk for both conditions is low. Maintain regular health check-ups."]

    return {
        "higher_risk_disease": higher,
        "recommendations": "\n".join(lines),
        "glaucoma_recommendations": glaucoma_rec,
        "cancer_recommendations": cancer_rec,
    }


@dataclass(frozen=True)
class AssessmentResult:
    glaucoma_score: RiskScore
    cancer_score: RiskScore
    higher_risk_disease: str
    recommendations: str
    glaucoma_recommendations: str
    cancer_recommendations: str

    @property
    def glaucoma_tier(self) -> str:
        return get_risk_level_name(self.glaucoma_score.score, GLAUCOMA)

    @property
    def cancer_tier(self) -> str:
        return get_risk_level_name(self.cancer_score.score, CANCER)

    def to_record(self) -> Dict[str, Any]:
        """Flatten to the stored assessment layout (stored verbatim, never recomputed)."""
        return {
            "glaucomaScore": self.glaucoma_score.score,
            "cancerScore": self.cancer_score.score,
            "glaucomaRiskPercentage": self.glaucoma_score.risk_percentage,
            "cancerRiskPercentage": self.cancer_score.risk_percentage,
            "glaucomaRiskLevel": self.glaucoma_tier,
            "cancerRiskLevel": self.cancer_tier,
            "higherRiskDisease": self.higher_risk_disease,
            "recommendations": self.recommendations,
            "glaucomaRecommendations": self.glaucoma_recommendations,
            "cancerRecommendations": self.cancer_recommendations,
        }


def compute_assessment(answers: Optional[Mapping[str, Any]]) -> AssessmentResult:
    """Normalize -> score -> classify/compose. Raises InvalidInputError only when `answers` is missing."""
    record = normalize_answers(answers)
    glaucoma, cancer = calculate_risk(record)
    return AssessmentResult(glaucoma, cancer, **get_overall_recommendations(glaucoma, cancer))
