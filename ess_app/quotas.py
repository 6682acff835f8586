import random
import time as _pytime

from gspread.exceptions import APIError

from .config import RETRY_ATTEMPTS, RETRY_BACKOFF

_RETRY_STATUS = (429, 500, 502, 503, 504)


def _is_quota_error(e: Exception) -> bool:
    sc = getattr(getattr(e, "response", None), "status_code", None)
    if isinstance(e, APIError) and sc in _RETRY_STATUS:
        return True
    s = str(e).lower()
    return "429" in s or "quota exceeded" in s


def with_backoff(fn, *args, retries: int = RETRY_ATTEMPTS, backoff: float = RETRY_BACKOFF, **kwargs):
    """Exponential backoff + jitter for gspread / Drive calls (429 and 5xx)."""
    for i in range(retries):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            if not _is_quota_error(e) or i == retries - 1:
                raise
            _pytime.sleep(backoff * (2 ** i) + random.uniform(0, 0.4))
    return fn(*args, **kwargs)
