"""Balance synchronization: startup check, sync now, address registration."""

from backend_daimonitor.sync.orchestrator import SyncOrchestrator, build_orchestrator, is_sync_due

__all__ = ["SyncOrchestrator", "build_orchestrator", "is_sync_due"]
