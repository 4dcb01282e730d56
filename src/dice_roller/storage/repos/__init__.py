from __future__ import annotations

from dice_roller.storage.repos.result_repo import ResultRepo

__all__ = [
    "ResultRepo",
]
