"""
Question Import and Merge

Turns raw import rows into Questions and appends them to an existing
bank, dropping rows that duplicate a question already present (by
normalized content fingerprint) and skipping rows missing required fields.
"""

import logging
import re
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from nclex_coach.errors import ImportFileError, MalformedImportRowError
from nclex_coach.models import Question, QuestionKind, parse_index_set

logger = logging.getLogger(__name__)

OPTION_COLUMNS = ("optionA", "optionB", "optionC", "optionD")
CORRECTNESS_COLUMNS = ("correctIndices", "correctIndex")

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class ImportReport:
    """Outcome of one import batch."""
    inserted: int
    duplicates: int
    skipped: int
    total: int  # Resulting bank size

    def summary(self) -> str:
        return (
            f"Imported {self.inserted}. Duplicates {self.duplicates}. "
            f"Skipped {self.skipped}. Total {self.total}."
        )


def normalize(value: Any) -> str:
    """Trim, strip one layer of double quotes, lower-case, collapse whitespace."""
    text = str(value if value is not None else "").strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return _WHITESPACE_RUN.sub(" ", text.lower())


def fingerprint(category: str, stem: str, options: Iterable[str]) -> str:
    """Content identity of a question, ignoring kind, answer key and rationale."""
    joined = "|".join(normalize(option) for option in options)
    return f"{normalize(category)}||{normalize(stem)}||{joined}"


def question_fingerprint(question: Question) -> str:
    return fingerprint(question.category, question.stem, question.options)


def _field(row: Dict[str, Any], name: str) -> str:
    value = row.get(name)
    if value is None:
        return ""
    return str(value).strip()


def row_to_question(
    row: Dict[str, Any],
    id_factory: Callable[[], str],
    row_number: Optional[int] = None,
) -> Question:
    """
    Normalize one import row into a Question.

    Args:
        row: Raw row with string fields
        id_factory: Generates the new question id
        row_number: 1-based position in the batch, for error messages

    Returns:
        Question draft with a fresh id

    Raises:
        MalformedImportRowError: If a required field is missing
    """
    category = _field(row, "category")
    stem = _field(row, "stem")
    options = [_field(row, column) for column in OPTION_COLUMNS]

    if not category:
        raise MalformedImportRowError("missing category", row_number)
    if not stem:
        raise MalformedImportRowError("missing stem", row_number)
    if not all(options):
        raise MalformedImportRowError("missing option", row_number)

    correctness = next((_field(row, c) for c in CORRECTNESS_COLUMNS if _field(row, c)), "")
    if not correctness:
        raise MalformedImportRowError("missing correctIndices/correctIndex", row_number)

    return Question(
        id=id_factory(),
        category=category,
        stem=stem,
        options=tuple(options),
        kind=QuestionKind.parse(_field(row, "kind")),
        correct_indices=tuple(parse_index_set(correctness)),
        rationale=_field(row, "rationale"),
    )


def merge_questions(
    existing: List[Question],
    rows: Iterable[Dict[str, Any]],
    id_factory: Optional[Callable[[], str]] = None,
) -> Tuple[List[Question], ImportReport]:
    """
    Append the valid, non-duplicate rows to the bank.

    Fingerprints of the existing bank are computed once and extended as the
    batch is processed, so duplicates inside the batch are caught too. The
    first question seen with a fingerprint wins.

    Args:
        existing: Current bank (not modified)
        rows: Candidate rows, in fingerprint-checking order
        id_factory: Id generator (defaults to uuid4 strings)

    Returns:
        (new_bank, report)
    """
    make_id = id_factory or (lambda: str(uuid.uuid4()))
    seen = {question_fingerprint(q) for q in existing}
    bank = list(existing)

    inserted = duplicates = skipped = 0
    for row_number, row in enumerate(rows, start=1):
        try:
            question = row_to_question(row, make_id, row_number)
        except MalformedImportRowError as e:
            logger.debug(f"🔍 [ImportMerge] Skipping {e}")
            skipped += 1
            continue

        fp = question_fingerprint(question)
        if fp in seen:
            duplicates += 1
            continue

        seen.add(fp)
        bank.append(question)
        inserted += 1

    report = ImportReport(inserted=inserted, duplicates=duplicates, skipped=skipped, total=len(bank))
    logger.info(f"📥 [ImportMerge] {report.summary()}")
    return bank, report


def read_csv_rows(source) -> List[Dict[str, str]]:
    """
    Read an import CSV (header row required) into raw rows.

    Blank lines are skipped and empty cells become empty strings.

    Args:
        source: File path or file-like object

    Returns:
        List of row dicts keyed by column name

    Raises:
        ImportFileError: If the source cannot be read as CSV
    """
    try:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return []
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
        raise ImportFileError(f"Could not read import file: {e}") from e

    frame.columns = [str(column).strip() for column in frame.columns]
    return frame.to_dict(orient="records")


def category_counts(questions: Iterable[Question]) -> List[Tuple[str, int]]:
    """Bank size per category, sorted by category name."""
    counts = Counter(q.category or "Uncategorized" for q in questions)
    return sorted(counts.items(), key=lambda item: item[0])
