"""
Performance Monitoring System

Collects and logs pipeline performance metrics through the
``"pipeline"`` after-hook.
"""

import json
import logging
import statistics
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


class PerformanceMonitor:
    """
    Monitors and logs pipeline performance metrics.

    Features:
    - Stage-level timing
    - Items in / out / dropped per run
    - JSON lines log file per day
    - In-memory recent metrics

    Constructed explicitly and handed to ``MemoryPipeline(monitor=...)``.
    """

    def __init__(self, log_dir: str = "logs", max_recent: int = 100):
        """
        Initialize performance monitor.

        Args:
            log_dir: Directory for log files
            max_recent: Max number of recent metrics to keep in memory
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.recent_metrics: deque = deque(maxlen=max_recent)

        self.stats = {
            "total_pipelines": 0,
            "total_items_in": 0,
            "total_items_out": 0,
        }

        self._setup_logger()

    def _setup_logger(self):
        """Setup JSON logger for metrics."""
        self.logger = logging.getLogger("memoria.metrics")
        self.logger.setLevel(logging.INFO)

        log_file = self.log_dir / f"metrics_{datetime.now().strftime('%Y%m%d')}.jsonl"
        handler = logging.FileHandler(log_file)
        handler.setLevel(logging.INFO)

        # Raw JSON lines
        handler.setFormatter(logging.Formatter('%(message)s'))

        for existing in list(self.logger.handlers):
            existing.close()
            self.logger.removeHandler(existing)
        self.logger.addHandler(handler)
        self.logger.propagate = False

    async def record_pipeline_execution(self, context: Dict[str, Any]):
        """
        Record a complete pipeline execution.

        Called by hook after the pipeline completes.
        """
        items_in = context.get("input_count", 0)
        items_out = context.get("output_count", len(context.get("items", [])))
        total_duration = time.time() - context.get("start_time", time.time())

        metric = {
            "timestamp": datetime.now().isoformat(),
            "type": "pipeline_execution",
            "profile": context.get("profile"),
            "total_duration": round(total_duration, 3),
            "stages_ms": dict(context.get("stage_timings", {})),
            "items": {
                "in": items_in,
                "out": items_out,
                "dropped": context.get("dropped_count", max(0, items_in - items_out)),
            },
        }

        self.stats["total_pipelines"] += 1
        self.stats["total_items_in"] += items_in
        self.stats["total_items_out"] += items_out

        self.recent_metrics.append(metric)
        self.logger.info(json.dumps(metric))

    def get_recent_metrics(self, limit: Optional[int] = None) -> List[Dict]:
        """Get recent metrics from memory."""
        metrics = list(self.recent_metrics)
        if limit:
            metrics = metrics[-limit:]
        return metrics

    def get_summary(self) -> Dict[str, Any]:
        """Get aggregated performance summary."""
        recent = list(self.recent_metrics)
        summary = dict(self.stats)

        if not recent:
            summary.update(avg_duration=0, avg_items_out=0)
            return summary

        durations = [m["total_duration"] for m in recent]
        outputs = [m["items"]["out"] for m in recent]

        summary.update(
            recent_count=len(recent),
            avg_duration=round(statistics.mean(durations), 3),
            avg_items_out=round(statistics.mean(outputs), 2),
            p95_duration=round(statistics.quantiles(durations, n=20)[18], 3) if len(durations) > 10 else 0,
        )
        return summary

    def get_log_files(self) -> List[str]:
        """Get list of available log files."""
        return sorted([
            f.name for f in self.log_dir.glob("metrics_*.jsonl")
        ], reverse=True)

    def read_log_file(self, filename: str, limit: Optional[int] = None) -> List[Dict]:
        """Read metrics from a log file."""
        log_file = self.log_dir / filename

        if not log_file.exists():
            return []

        metrics = []
        with open(log_file, 'r') as f:
            for line in f:
                try:
                    metrics.append(json.loads(line.strip()))
                except json.JSONDecodeError:
                    continue

        if limit:
            metrics = metrics[-limit:]

        return metrics

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
