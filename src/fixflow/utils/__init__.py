"""Small shared helpers for fixflow."""

from fixflow.utils.time import ensure_utc, utc_now

__all__ = ["ensure_utc", "utc_now"]
