"""Loading of templates, provisional terms and assays from files."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from .core.provisional import ProvisionalTerm
from .core.template import Schema
from .errors import TemplateFormatError, VocabError
from .types import Assay

logger = logging.getLogger(__name__)


class DataLoadError(VocabError):
    """Raised when data loading fails."""

    pass


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON in {path}: {e}") from e


def _read_records(path: Path) -> list[dict[str, Any]]:
    """Read either a JSON array or JSONL (one object per line)."""
    with open(path, encoding="utf-8") as f:
        content = f.read()
    stripped = content.lstrip()
    if stripped.startswith("["):
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise DataLoadError(f"Invalid JSON in {path}: {e}") from e
        return [item for item in data if isinstance(item, dict)]

    records = []
    for lineno, line in enumerate(content.splitlines(), 1):
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise DataLoadError(f"Invalid JSON at {path}:{lineno}: {e}") from e
    return records


# =============================================================================
# Templates
# =============================================================================


def load_template(path: str | Path) -> Schema:
    """Load one template JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        DataLoadError: If the content is not a valid template
    """
    filepath = Path(path)
    if not filepath.exists():
        raise FileNotFoundError(f"Template file not found: {filepath}")
    try:
        return Schema.from_dict(_read_json(filepath))
    except TemplateFormatError as e:
        raise DataLoadError(f"Invalid template {filepath}: {e}") from e


def load_templates(directory: str | Path) -> list[Schema]:
    """Load every *.json template in a directory, ordered by name."""
    dirpath = Path(directory)
    if not dirpath.is_dir():
        raise FileNotFoundError(f"Template directory not found: {dirpath}")
    templates = [load_template(p) for p in sorted(dirpath.glob("*.json"))]
    logger.info(f"Loaded {len(templates)} templates from {dirpath}")
    return templates


# =============================================================================
# Provisional terms
# =============================================================================


def load_provisional_terms(path: str | Path) -> list[ProvisionalTerm]:
    """Load provisional terms from a JSON array or JSONL file."""
    filepath = Path(path)
    if not filepath.exists():
        raise FileNotFoundError(f"Provisional terms file not found: {filepath}")
    return [ProvisionalTerm.model_validate(record) for record in _read_records(filepath)]


def provisional_source(path: str | Path) -> Callable[[], list[ProvisionalTerm]]:
    """A term source that rereads the file on every call, for ProvisionalCache.update()."""
    filepath = Path(path)

    def source() -> list[ProvisionalTerm]:
        return load_provisional_terms(filepath)

    return source


# =============================================================================
# Assays
# =============================================================================


def iter_assays(path: str | Path) -> Iterator[Assay]:
    filepath = Path(path)
    if not filepath.exists():
        raise FileNotFoundError(f"Assay file not found: {filepath}")
    for record in _read_records(filepath):
        try:
            yield Assay.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            raise DataLoadError(f"Invalid assay record {record.get('assayID')}: {e}") from e


def load_assays(path: str | Path, assay_id: str | None = None) -> list[Assay]:
    """Load assays from a JSONL (or JSON array) file.

    Args:
        path: Path to the assay file
        assay_id: Optional ID to filter to a single assay

    Returns:
        List of assays (exactly one if assay_id was given)

    Raises:
        FileNotFoundError: If file doesn't exist
        DataLoadError: If a record is malformed, or assay_id is not found
    """
    assays = []
    for assay in iter_assays(path):
        if assay_id is not None and assay.assay_id == assay_id:
            return [assay]
        assays.append(assay)
    if assay_id is not None:
        raise DataLoadError(f"Assay {assay_id} not found in {path}")
    return assays
