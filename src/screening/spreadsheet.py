"""
Workbook ingestion: read one questionnaire answer row from an Excel upload.

The workbook must hold a sheet named "Data" (any case). Only the first data row
is used. Column headers are matched to question ids ignoring case, spaces and
underscores ("ElevatedIOP", "elevated_iop" -> "elevatedIOP"). Values are passed
through as-is, except empty cells which become None; deciding yes/no is left to
engine.normalize_answer.
"""
import logging
from typing import Any, Dict, Optional

import pandas as pd

from engine import QUESTION_IDS
from src.screening.errors import SpreadsheetError

logger = logging.getLogger(__name__)

DEFAULT_SHEET = "Data"


def _header_key(header: Any) -> str:
    return "".join(str(header).split()).replace("_", "").lower()


HEADER_TO_ENGINE_KEY: Dict[str, str] = {_header_key(qid): qid for qid in QUESTION_IDS}


def canonical_key(header: Any) -> Optional[str]:
    """Question id for a spreadsheet column header, or None if it is not a question."""
    return HEADER_TO_ENGINE_KEY.get(_header_key(header))


def _native(value: Any) -> Any:
    if pd.isna(value):
        return None
    # numpy scalars (numpy.bool_, numpy.int64) -> plain Python values
    if hasattr(value, "item"):
        return value.item()
    return value


def map_spreadsheet_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a spreadsheet row (dict-like) to an engine answer dict; unknown columns are dropped."""
    out = {}
    for header, value in row.items():
        key = canonical_key(header)
        if key is not None:
            out[key] = _native(value)
    return out


def read_answers(source: Any, sheet_name: str = DEFAULT_SHEET) -> Dict[str, Any]:
    """
    Read the raw answer map from a workbook.

    source: path, file-like object or Streamlit UploadedFile.
    Raises SpreadsheetError if the file is unreadable, the sheet is missing or empty.
    """
    try:
        sheets = pd.read_excel(source, sheet_name=None)
    except Exception as exc:
        raise SpreadsheetError(f"Failed to parse Excel file: {exc}") from exc

    name = next((n for n in sheets if str(n).strip().lower() == sheet_name.lower()), None)
    if name is None:
        raise SpreadsheetError(f"Sheet named '{sheet_name}' not found.")

    frame = sheets[name]
    if frame.empty:
        raise SpreadsheetError(f"No data found in the '{name}' sheet.")

    answers = map_spreadsheet_row(frame.iloc[0].to_dict())
    missing = sorted(set(QUESTION_IDS) - set(answers))
    if missing:
        logger.warning("Workbook has no column for %s; treating as unanswered.", ", ".join(missing))
    logger.info("Read %d answers from sheet '%s'.", len(answers), name)
    return answers
