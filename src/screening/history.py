"""
History views over stored assessment records (the dicts produced by
AssessmentResult.to_record() plus a timestamp).

Stored scores are never recomputed here: a record keeps the score it was
given when it was created, even if the weights have changed since.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from engine import CANCER, GLAUCOMA, HIGHER_RISK_CHOICES
from src.screening.errors import HistoryError

logger = logging.getLogger(__name__)

SCORE_COLUMNS = {GLAUCOMA: "glaucomaScore", CANCER: "cancerScore"}
FRAME_COLUMNS = ["timestamp", "glaucomaScore", "cancerScore", "higherRiskDisease"]
DEFAULT_LIMIT = 30


def assessment_frame(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Stored records as a DataFrame, oldest first, with a parsed UTC `timestamp` column."""
    frame = pd.DataFrame([dict(r) for r in records])
    if frame.empty:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    missing = [c for c in ("timestamp", *SCORE_COLUMNS.values()) if c not in frame.columns]
    if missing:
        raise HistoryError(f"Assessment records are missing field(s): {', '.join(missing)}")
    if frame[list(SCORE_COLUMNS.values())].isna().any().any():
        raise HistoryError("Assessment record without a stored score")

    try:
        frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    except (ValueError, TypeError) as exc:
        raise HistoryError(f"Unreadable assessment timestamp: {exc}") from exc

    if "higherRiskDisease" not in frame.columns:
        frame["higherRiskDisease"] = None
    return frame.sort_values("timestamp", kind="stable").reset_index(drop=True)


def _utc_day(value: Any) -> pd.Timestamp:
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError) as exc:
        raise HistoryError(f"Unreadable date filter {value!r}: {exc}") from exc
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.tz_convert("UTC").normalize()


def filter_records(
    records: Iterable[Mapping[str, Any]],
    user: Optional[str] = None,
    start: Any = None,
    end: Any = None,
) -> List[Dict[str, Any]]:
    """
    Records for one patient and/or a date range, oldest first.

    user matches the stored `userEmail` ignoring case. start and end are
    calendar days and both are inclusive: end="2026-01-20" keeps anything
    stamped on the 20th.
    """
    frame = assessment_frame(records)
    if frame.empty:
        return []

    mask = pd.Series(True, index=frame.index)
    if user is not None:
        emails = frame["userEmail"] if "userEmail" in frame.columns else pd.Series("", index=frame.index)
        mask &= emails.fillna("").astype(str).str.strip().str.lower() == user.strip().lower()
    if start is not None:
        mask &= frame["timestamp"] >= _utc_day(start)
    if end is not None:
        mask &= frame["timestamp"] < _utc_day(end) + pd.Timedelta(days=1)

    logger.debug("History filter user=%s start=%s end=%s kept %d of %d", user, start, end, int(mask.sum()), len(frame))
    return frame[mask].to_dict("records")


def user_trend(records: Iterable[Mapping[str, Any]], limit: int = DEFAULT_LIMIT) -> pd.DataFrame:
    """The most recent `limit` assessments, oldest first, for the trend line chart."""
    if limit <= 0:
        raise HistoryError(f"limit must be positive, got {limit}")
    frame = assessment_frame(records)
    return frame.tail(limit).reset_index(drop=True)[["timestamp", "glaucomaScore", "cancerScore"]]


def _direction(change: float) -> str:
    if change > 0:
        return "worsening"
    if change < 0:
        return "improving"
    return "stable"


def trend_summary(records: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Latest score, change since the previous assessment and direction per condition.

    Returns:
        {"assessments": int,
         "glaucoma": {"latest", "change", "direction", "average"},
         "cancer": {...}}
    """
    frame = assessment_frame(records)
    summary: Dict[str, Any] = {"assessments": len(frame)}
    for condition, column in SCORE_COLUMNS.items():
        scores = frame[column].astype(float)
        latest = float(scores.iloc[-1]) if len(scores) else None
        change = float(scores.iloc[-1] - scores.iloc[-2]) if len(scores) >= 2 else 0.0
        summary[condition] = {
            "latest": latest,
            "change": change,
            "direction": _direction(change),
            "average": round(float(scores.mean()), 2) if len(scores) else None,
        }
    return summary


def monthly_averages(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Average glaucoma / cancer score and assessment count per calendar month (YYYY-MM)."""
    frame = assessment_frame(records)
    if frame.empty:
        return pd.DataFrame(columns=["month", "avgGlaucomaScore", "avgCancerScore", "count"])

    frame = frame.assign(month=frame["timestamp"].dt.strftime("%Y-%m"))
    out = (
        frame.groupby("month", sort=True)
        .agg(
            avgGlaucomaScore=("glaucomaScore", "mean"),
            avgCancerScore=("cancerScore", "mean"),
            count=("glaucomaScore", "size"),
        )
        .reset_index()
    )
    out[["avgGlaucomaScore", "avgCancerScore"]] = out[["avgGlaucomaScore", "avgCancerScore"]].round(2)
    return out


def illness_distribution(records: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    """How many assessments named each condition as the higher risk (all four keys present)."""
    frame = assessment_frame(records)
    counts = frame["higherRiskDisease"].value_counts()
    unknown = set(counts.index) - set(HIGHER_RISK_CHOICES)
    if unknown:
        logger.warning("Ignoring unknown higherRiskDisease value(s): %s", sorted(map(str, unknown)))
    return {choice: int(counts.get(choice, 0)) for choice in HIGHER_RISK_CHOICES}
