from app.services.sync.controller import StatusReport, SyncController, SyncResult
from app.services.sync.effects import best_effort
from app.services.sync.sweeper import DriftSweeper

__all__ = [
    "DriftSweeper",
    "StatusReport",
    "SyncController",
    "SyncResult",
    "best_effort",
]
