# Policyledger Utils
from policyledger.utils.ids import (
    new_id,
    utc_now,
    utc_now_iso,
)

__all__ = [
    "new_id",
    "utc_now",
    "utc_now_iso",
]
