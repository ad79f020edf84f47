"""
Tenant Metrics

Per-tenant, per-operation counters shared by concurrent engine calls.
All updates happen under one asyncio.Lock.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from pydantic import BaseModel

logger = logging.getLogger("memoria.monitoring")

T = TypeVar("T")


class OperationStats(BaseModel):
    """Counters for one (tenant, operation) pair."""
    count: int = 0
    errors: int = 0
    total_duration_ms: float = 0.0

    @property
    def average_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count else 0.0


class TenantMetrics:
    """Counters keyed by tenant and operation, safe for concurrent tasks."""

    def __init__(self):
        self._stats: Dict[Tuple[str, str], OperationStats] = {}
        self._lock = asyncio.Lock()

    async def record(
        self,
        tenant_id: str,
        operation: str,
        duration_ms: float,
        error: bool = False,
    ) -> None:
        async with self._lock:
            stats = self._stats.setdefault((tenant_id, operation), OperationStats())
            stats.count += 1
            stats.total_duration_ms += duration_ms
            if error:
                stats.errors += 1

    def get(self, tenant_id: str, operation: str) -> OperationStats:
        stats = self._stats.get((tenant_id, operation))
        return stats.model_copy() if stats else OperationStats()

    def snapshot(self, tenant_id: Optional[str] = None) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """``{tenant: {operation: {count, errors, total_duration_ms, average_duration_ms}}}``."""
        result: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for (tenant, operation), stats in sorted(self._stats.items()):
            if tenant_id is not None and tenant != tenant_id:
                continue
            result.setdefault(tenant, {})[operation] = {
                **stats.model_dump(),
                "average_duration_ms": stats.average_duration_ms,
            }
        return result

    def reset(self) -> None:
        self._stats.clear()


async def with_metrics(
    metrics: TenantMetrics,
    tenant_id: str,
    operation: str,
    fn: Callable[[], Awaitable[T]],
) -> T:
    """
    Await ``fn()`` and record its duration and outcome.

    Exceptions are counted and re-raised.
    """
    started = time.perf_counter()
    failed = False
    try:
        return await fn()
    except Exception:
        failed = True
        raise
    finally:
        duration_ms = (time.perf_counter() - started) * 1000
        await metrics.record(tenant_id, operation, duration_ms, error=failed)
        logger.debug(f"{tenant_id}/{operation} took {duration_ms:.1f}ms (error={failed})")
