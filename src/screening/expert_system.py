"""
Screening expert system: the application-facing wrapper around engine.py.
It adds what the pure engine leaves out: configuration, logging, workbook
input and history views over stored records.

NOTE: Screening aid only. Do NOT use it for clinical diagnosis.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

import pandas as pd

from engine import InvalidInputError, compute_assessment, normalize_answers
from src.screening import history
from src.screening.spreadsheet import DEFAULT_SHEET, read_answers

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "history_limit": history.DEFAULT_LIMIT,
    "sheet_name": DEFAULT_SHEET,
}


class ScreeningExpertSystem:
    """
    Rule-based glaucoma / cancer screener.

    Methods:
        assess(answers): score one questionnaire, return the record to store
        assess_workbook(source): same, with answers read from an Excel upload
        trend(records): recent history for the trend chart
        dashboard(records, user, start, end): doctor-facing summary, filtered by patient and dates
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = {**DEFAULT_CONFIG, **(config or {})}

    def assess(
        self,
        answers: Optional[Mapping[str, Any]],
        timestamp: Optional[datetime] = None,
        user: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Score a questionnaire submission.

        answers: question id -> bool / "Yes" / "No" / 1 / 0; missing ids count as "No".
        user: patient email, stored as userEmail so the dashboard can filter on it.
        Returns the stored-assessment dict: scores, percentages, tier names,
        higherRiskDisease, recommendations, plus formData and timestamp.
        Raises InvalidInputError when answers is None or not a mapping.
        """
        try:
            form_data = normalize_answers(answers)
        except InvalidInputError:
            logger.warning("Rejected assessment: %s answers", type(answers).__name__)
            raise

        result = compute_assessment(form_data)
        record = result.to_record()
        record["formData"] = dict(form_data)
        record["timestamp"] = timestamp or datetime.now(timezone.utc)
        if user is not None:
            record["userEmail"] = user
        logger.info(
            "Assessment scored: glaucoma=%d cancer=%d higher=%s",
            result.glaucoma_score.score, result.cancer_score.score, result.higher_risk_disease,
        )
        return record

    def assess_workbook(
        self, source: Any, timestamp: Optional[datetime] = None, user: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Read the first answer row of the workbook's Data sheet and score it."""
        answers = read_answers(source, sheet_name=self.config["sheet_name"])
        return self.assess(answers, timestamp=timestamp, user=user)

    def trend(self, records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
        return history.user_trend(records, limit=self.config["history_limit"])

    def dashboard(
        self,
        records: Iterable[Mapping[str, Any]],
        user: Optional[str] = None,
        start: Any = None,
        end: Any = None,
    ) -> Dict[str, Any]:
        """Doctor view, optionally narrowed to one patient email and an inclusive start/end date range."""
        records = history.filter_records(records, user=user, start=start, end=end)
        return {
            "summary": history.trend_summary(records),
            "monthly": history.monthly_averages(records),
            "distribution": history.illness_distribution(records),
            "trend": self.trend(records),
        }
