"""
System prompt rendering.

Rationale:
- The template is plain text owned by the caller, with {{SCHEMA}} and
  {{DATASET}} placeholders. No templating engine needed.
- Only the first MAX_ROWS_FOR_AI rows are sent, to bound tokens per request.
- Both placeholders are replaced in a single pass, so substituted values are
  never rescanned and the order of placeholders in the template does not matter.
"""

import json
import logging
import os
import re
import textwrap
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence

from .schemas import DynamicData

logger = logging.getLogger(__name__)

# Limit rows sent to the model to stay within context windows.
MAX_ROWS_FOR_AI = 500

PROMPTS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")
DEFAULT_TEMPLATE_PATH = os.path.join(PROMPTS_DIR, "chart_system.md")

_PLACEHOLDER_RE = re.compile(r"\{\{(SCHEMA|DATASET)\}\}")


def truncate_rows(rows: Sequence[Dict[str, Any]], limit: int = MAX_ROWS_FOR_AI) -> List[Dict[str, Any]]:
    return list(rows[:limit])


def dataset_to_json(rows: Sequence[Dict[str, Any]]) -> str:
    """Compact JSON for the (already truncated) rows."""
    return json.dumps(list(rows), separators=(",", ":"), ensure_ascii=False, default=str)


def render_system_prompt(template: str, schema: str, dataset_json: str) -> str:
    """
    Substitute {{SCHEMA}} and {{DATASET}} in `template`.
    A missing placeholder leaves the template untouched for that value and is logged.
    """
    values = {"SCHEMA": schema, "DATASET": dataset_json}
    for name in values:
        if "{{%s}}" % name not in template:
            logger.warning(f"System prompt template has no {{{{{name}}}}} placeholder; value not included")
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)


def build_system_prompt(template: str, dynamic_data: DynamicData) -> str:
    rows = truncate_rows(dynamic_data.dataset)
    if len(dynamic_data.dataset) > len(rows):
        logger.info(f"Truncated dataset {dynamic_data.file_name!r} from {len(dynamic_data.dataset)} to {len(rows)} rows")
    return render_system_prompt(template, dynamic_data.schema_description, dataset_to_json(rows))


def build_suggestion_prompt(dynamic_data: DynamicData) -> str:
    rows = truncate_rows(dynamic_data.dataset)
    header = textwrap.dedent(
        """\
        Analyze the following dataset schema and data sample.
        Generate 3 insightful questions that a user could ask to create meaningful charts/visualizations from this data.
        Return the result as a JSON object with a "suggestions" key containing an array of strings.
        """
    )
    return (
        f"{header}\n"
        f"Schema:\n{dynamic_data.schema_description}\n\n"
        f"Data Sample:\n{dataset_to_json(rows)}\n"
    )


@lru_cache(maxsize=8)
def load_prompt_template(path: Optional[str] = None) -> str:
    """Read a prompt template file once per path."""
    with open(path or DEFAULT_TEMPLATE_PATH, "r", encoding="utf-8") as f:
        return f.read()
