"""
Auto-Resolver

Applies simple additions and simple conflicts to a deep copy of the
existing record, recording one automatic Change per write.
"""

import copy
import logging
from typing import Any, List, Tuple

from memoria.enrichment.diff import is_empty
from memoria.models.enrichment import (
    Change,
    ChangeAction,
    ChangeSource,
    DataAnalysis,
    FieldConflict,
)
from memoria.recognition.field_paths import set_value

logger = logging.getLogger("memoria.enrichment")


def resolve_simple_conflict(conflict: FieldConflict) -> Any:
    """
    Pick a winner for a simple conflict.

    The only non-empty value wins; otherwise the longest string, then
    the longest list; anything else keeps the existing value.
    """
    candidates = [v for v in conflict.unique_values if not is_empty(v)]

    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        return conflict.existing_value

    if all(isinstance(v, str) for v in candidates):
        return max(candidates, key=len)
    if all(isinstance(v, list) for v in candidates):
        return max(candidates, key=len)

    return conflict.existing_value


def auto_resolve(existing: Any, analysis: DataAnalysis) -> Tuple[Any, List[Change]]:
    """Return the resolved copy of ``existing`` and the changes made."""
    result = copy.deepcopy(existing)
    changes: List[Change] = []

    for addition in analysis.additions:
        if not addition.is_simple:
            continue
        value = copy.deepcopy(addition.values[0])
        if set_value(result, addition.field, value):
            changes.append(Change(
                field=addition.field,
                action=ChangeAction.ADDED,
                new_value=value,
                source=ChangeSource.AUTOMATIC,
            ))
        else:
            logger.debug(f"Cannot add field {addition.field}: path runs through a scalar")

    for conflict in analysis.conflicts:
        if not conflict.is_simple:
            continue
        value = copy.deepcopy(resolve_simple_conflict(conflict))
        if value == conflict.existing_value:
            continue
        if set_value(result, conflict.field, value):
            changes.append(Change(
                field=conflict.field,
                action=ChangeAction.RESOLVED_CONFLICT,
                old_value=conflict.existing_value,
                new_value=value,
                source=ChangeSource.AUTOMATIC,
            ))

    return result, changes
