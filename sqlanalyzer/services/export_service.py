"""CSV export of evaluation scores."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Mapping

from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.schemas.records import GeneratedQueryRecord

logger = logging.getLogger(__name__)

CSV_FILE_NAME = "output.csv"
CSV_HEADER = "score,llm_name,prompt_type_name,sample_query_name,sample_query_complexity"

_MISSING = "null"


def _format_score(score: float) -> str:
    return "NaN" if math.isnan(score) else str(score)


def _score_row(
    query: GeneratedQueryRecord,
    score: float,
    registry: StoreRegistry,
) -> str:
    """Build one CSV line, resolving referenced records through the stores.

    Values are written as-is; names are assumed to contain no commas.
    """
    llm = registry.llms.get_by_id(query.generator_id)
    prompt = registry.prompts.get_by_id(query.prompt_id)
    prompt_type = registry.prompt_types.get_by_id(prompt.type_id) if prompt else None
    sample_query = (
        registry.sample_queries.get_by_id(prompt.sample_query_id) if prompt else None
    )

    return ",".join(
        [
            _format_score(score),
            llm.name if llm else _MISSING,
            prompt_type.name if prompt_type else _MISSING,
            sample_query.name if sample_query else _MISSING,
            sample_query.complexity.name if sample_query else _MISSING,
        ]
    )


def export_scores_csv(
    scores: Mapping[GeneratedQueryRecord, float],
    directory: Path | str,
    registry: StoreRegistry,
) -> Path:
    """Write ``scores`` to ``<directory>/output.csv``.

    Missing parent directories are created. An existing file is replaced.

    Args:
        scores: Score per generated query.
        directory: Target directory.
        registry: Stores used to resolve LLM, prompt type and sample query.

    Returns:
        Path of the written file.

    Raises:
        OSError: If the directory or file cannot be written.
    """
    target = Path(directory) / CSV_FILE_NAME
    target.parent.mkdir(parents=True, exist_ok=True)

    lines = [CSV_HEADER]
    lines.extend(_score_row(query, score, registry) for query, score in scores.items())
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")

    logger.info(
        "export.csv_written",
        extra={"file": str(target), "rows": len(scores)},
    )
    return target
