"""No-op audit log, used when log_decisions is turned off.

Using a NoOpAuditLog rather than None lets the pipeline always call
audit.append() without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from modlens_store.base import BaseAuditLog

if TYPE_CHECKING:
    from modlens_store.models import LogEntry


class NoOpAuditLog(BaseAuditLog):
    """Silently discards all entries."""

    def _write(self, entry: LogEntry) -> None:
        pass  # intentional no-op

    def list_entries(self, level: str | None = None, comment_id: int | None = None, limit: int = 100) -> list[LogEntry]:
        return []
