"""Sync orchestration for fhir_sync.

Modules:
    cycle — one fetch → normalize → bundle → submit run, with observable state
"""

from fhir_sync.sync.cycle import SyncCycle, SyncHandle, SyncState

__all__ = ["SyncCycle", "SyncHandle", "SyncState"]
