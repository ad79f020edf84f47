"""
Diff Analyzer

Compares an existing record against additional sources field by field.

Each field path found in a source is either:
- an addition: absent from the existing record
- a conflict: present, but the value set (existing + sources) has
  more than one distinct value

A conflict on a mapping is recorded alongside the conflicts of its
child paths; two differing non-empty mappings make a complex conflict.
New mappings are added through their child paths only.
"""

import copy
import json
from typing import Any, Dict, List

from memoria.models.enrichment import DataAnalysis, FieldAddition, FieldConflict
from memoria.recognition.field_paths import MISSING, all_field_paths, get_value


def is_empty(value: Any) -> bool:
    """None, empty string, empty list and empty mapping count as empty."""
    return value is None or value is MISSING or value in ("", [], {})


def canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def unique_values(values: List[Any]) -> List[Any]:
    """Distinct values by canonical JSON, first-seen order."""
    seen: Dict[str, Any] = {}
    for value in values:
        seen.setdefault(canonical(value), value)
    return [copy.deepcopy(v) for v in seen.values()]


def is_simple_conflict(values: List[Any]) -> bool:
    """
    Whether a conflict can be resolved without the LLM.

    Simple when at most one value is non-empty, when all values are
    strings and the longest is more than twice the shortest, or when all
    values are lists of different lengths.
    """
    if len(values) <= 1:
        return True

    if sum(1 for v in values if not is_empty(v)) <= 1:
        return True

    if all(isinstance(v, str) for v in values):
        lengths = [len(v) for v in values]
        return max(lengths) > min(lengths) * 2

    if all(isinstance(v, list) for v in values):
        lengths = [len(v) for v in values]
        return max(lengths) > min(lengths)

    return False


def _all_mappings(values: List[Any]) -> bool:
    return bool(values) and all(isinstance(v, dict) for v in values)


def analyze(existing: Any, additional: List[Any]) -> DataAnalysis:
    """Classify every field of ``additional`` against ``existing``."""
    existing_fields = set(all_field_paths(existing))
    collected: Dict[str, List[Any]] = {}

    for source in additional:
        for path in all_field_paths(source):
            value = get_value(source, path)
            if value is MISSING:
                continue
            collected.setdefault(path, []).append(value)

    analysis = DataAnalysis()
    for path, values in collected.items():
        if path not in existing_fields:
            distinct = unique_values(values)
            if _all_mappings(distinct):
                continue
            addition = FieldAddition(field=path, values=distinct, is_simple=len(distinct) == 1)
            analysis.additions.append(addition)
            if not addition.is_simple:
                analysis.has_complex_conflicts = True
            continue

        existing_value = get_value(existing, path)
        existing_value = None if existing_value is MISSING else existing_value
        distinct = unique_values([existing_value] + values)
        if len(distinct) <= 1:
            continue

        conflict = FieldConflict(
            field=path,
            existing_value=copy.deepcopy(existing_value),
            additional_values=copy.deepcopy(values),
            unique_values=distinct,
            is_simple=is_simple_conflict(distinct),
        )
        analysis.conflicts.append(conflict)
        if not conflict.is_simple:
            analysis.has_complex_conflicts = True

    return analysis
