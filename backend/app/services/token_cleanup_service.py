"""Token cleanup service.

Purges token pairs that expired more than the retention window ago. Runs on
demand (cleanup endpoint or an external scheduler); there is no internal timer.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from prometheus_client import Counter

from app.core.clock import Clock, isoformat, utcnow
from app.core.database import Database
from app.services.token_store import TokenStore

logger = logging.getLogger(__name__)

TOKENS_PURGED = Counter(
    "tokens_purged_total",
    "Token pairs physically deleted by cleanup",
)
CLEANUP_RUNS = Counter(
    "token_cleanup_runs_total",
    "Token cleanup runs",
    ["outcome"],
)


@dataclass
class CleanupStats:
    total_tokens: int
    expired_tokens: int
    revoked_tokens: int
    last_cleanup_time: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTokens": self.total_tokens,
            "expiredTokens": self.expired_tokens,
            "revokedTokens": self.revoked_tokens,
            "lastCleanupTime": isoformat(self.last_cleanup_time) if self.last_cleanup_time else None,
        }


class TokenCleanupService:
    """Purge, stats and health reporting over the token store."""

    def __init__(
        self,
        database: Database,
        token_store: TokenStore,
        retention_days: int = 30,
        clock: Clock = utcnow,
    ):
        self.database = database
        self.token_store = token_store
        self.retention_days = retention_days
        self.clock = clock
        # Process-local; reset on restart.
        self.last_cleanup_time: Optional[datetime] = None

    def execute_cleanup(self) -> int:
        """
        Delete token pairs whose both expiries are past the retention window.

        Returns:
            int: Number of deleted pairs
        """
        started = time.perf_counter()
        try:
            with self.database.session() as db:
                deleted = self.token_store.purge_expired(db, self.retention_days)
        except Exception:
            CLEANUP_RUNS.labels(outcome="error").inc()
            logger.exception("Token cleanup failed")
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        self.last_cleanup_time = self.clock()
        CLEANUP_RUNS.labels(outcome="ok").inc()
        TOKENS_PURGED.inc(deleted)
        logger.info(
            "Token cleanup removed %s pair(s) in %.1f ms (retention %s days)",
            deleted,
            duration_ms,
            self.retention_days,
        )
        return deleted

    def get_stats(self, user_id: Optional[int] = None) -> CleanupStats:
        """
        ``expired_tokens`` counts pairs whose refresh token has expired, that is
        pairs that can no longer be used at all and are waiting for a purge.
        """
        with self.database.session() as db:
            stats = self.token_store.stats(db, user_id=user_id)
        return CleanupStats(
            total_tokens=stats.total,
            expired_tokens=stats.refresh_expired,
            revoked_tokens=stats.revoked,
            last_cleanup_time=self.last_cleanup_time,
        )

    def health_check(self) -> Dict[str, Any]:
        """Report whether the token store answers a count query. Never raises."""
        timestamp = isoformat(self.clock())
        try:
            with self.database.session() as db:
                total = self.token_store.count(db)
        except Exception as exc:
            logger.error("Token cleanup health check failed: %s", exc)
            return {"status": "unhealthy", "message": str(exc), "timestamp": timestamp}
        return {
            "status": "healthy",
            "message": f"Token store reachable ({total} token pair(s))",
            "timestamp": timestamp,
        }
