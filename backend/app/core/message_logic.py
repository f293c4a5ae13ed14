from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_text(text: Optional[str]) -> Optional[str]:
    """Trimmed message body, or None when nothing is left to send."""
    if text is None:
        return None
    text = text.strip()
    return text or None


def coerce_message_ids(raw: Iterable[Any]) -> List[int]:
    """Keep the ids that look like message ids, preserving order, dropping repeats."""
    ids = []
    seen = set()
    for value in raw:
        if isinstance(value, bool):
            continue
        try:
            message_id = int(value)
        except (TypeError, ValueError):
            continue
        if message_id not in seen:
            seen.add(message_id)
            ids.append(message_id)
    return ids
