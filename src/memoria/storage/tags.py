"""Tag normalization shared by stores and engines."""

from typing import Iterable, List, Optional


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trim, lower-case and de-duplicate tags, keeping first-seen order."""
    if not tags:
        return []

    seen = set()
    normalized: List[str] = []
    for tag in tags:
        if tag is None:
            continue
        value = str(tag).strip().lower()
        if value and value not in seen:
            seen.add(value)
            normalized.append(value)
    return normalized
