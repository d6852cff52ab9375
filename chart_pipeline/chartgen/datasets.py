"""
Bridge from parsed tabular data to DynamicData.

Rationale:
- Uploads are parsed with pandas (CSV, or Excel via openpyxl/xlrd); after
  that this module only shapes the resulting rows.
- pandas/numpy values are converted to plain JSON types so rows validate and
  serialize cleanly.
- Starter suggestions are derived from column types with simple rules: fast
  and deterministic, no LLM call needed.
"""

import io
import logging
import math
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from .schemas import DynamicData

logger = logging.getLogger(__name__)

MAX_HEURISTIC_SUGGESTIONS = 3
_TIME_HINTS = ("date", "time", "year")


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


def describe_schema(rows: Sequence[Dict[str, Any]]) -> str:
    """Human-readable column list taken from the first row."""
    if not rows:
        return ""
    lines = ["Dataset Schema:"]
    for key, value in rows[0].items():
        lines.append(f"- {key}: {_json_type(value)}")
    return "\n".join(lines)


def heuristic_suggestions(rows: Sequence[Dict[str, Any]]) -> List[str]:
    """Up to three query ideas based on the first row's column types."""
    if not rows:
        return []
    row = rows[0]
    numeric_keys = [k for k, v in row.items() if _json_type(v) == "number"]
    string_keys = [k for k, v in row.items() if _json_type(v) == "string"]
    time_key = next((k for k in row if any(h in k.lower() for h in _TIME_HINTS)), None)

    suggestions = []
    if numeric_keys:
        suggestions.append(f"Show total {numeric_keys[0]}")
        if string_keys:
            suggestions.append(f"{numeric_keys[0]} by {string_keys[0]}")

    if time_key and numeric_keys:
        suggestions.append(f"{numeric_keys[0]} trend over time")
    elif len(numeric_keys) > 1:
        suggestions.append(f"Compare {numeric_keys[0]} vs {numeric_keys[1]}")
    elif string_keys:
        suggestions.append(f"Count by {string_keys[0]}")

    return suggestions[:MAX_HEURISTIC_SUGGESTIONS]


def _native(value: Any) -> Any:
    """numpy/pandas scalar -> plain Python; NaN/NaT -> None."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is None or value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return str(value)


def dataframe_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    return [{k: _native(v) for k, v in record.items()} for record in df.to_dict(orient="records")]


def read_table(content: bytes, file_name: str) -> pd.DataFrame:
    """Parse an uploaded CSV or Excel file into a DataFrame."""
    extension = file_name.rsplit(".", 1)[-1].lower()
    if extension == "csv":
        return pd.read_csv(io.BytesIO(content))
    engine = "openpyxl" if extension == "xlsx" else "xlrd"
    return pd.read_excel(io.BytesIO(content), engine=engine)


def dynamic_data_from_dataframe(df: pd.DataFrame, file_name: str) -> DynamicData:
    rows = dataframe_to_rows(df)
    logger.info(f"Prepared {file_name!r}: {len(rows)} rows x {len(df.columns)} columns")
    return DynamicData(
        dataset=rows,
        schema=describe_schema(rows),
        file_name=file_name,
        suggestions=heuristic_suggestions(rows),
    )
