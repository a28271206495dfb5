import math
from urllib.parse import urlparse
from typing import Any, Callable, Iterable, NewType, Optional, TypeVar

Json = NewType('Json', Any)

T = TypeVar('T')

def find(pred: Callable[[T], bool], items: Iterable[T]) -> Optional[T]:
    return next((x for x in items if pred(x)), None)


def to_float(value: Any) -> Optional[float]:
    """Best-effort float conversion. Booleans, NaN and infinities are not numbers here."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def is_url(s: str) -> bool:
    return urlparse(s).scheme in ("http", "https")


def is_youtube(url: str) -> bool:
    return "youtube.com" in url or "youtu.be" in url
