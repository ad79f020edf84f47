"""
Monitoring subsystem for memoria.
"""

from memoria.monitoring.performance import PerformanceMonitor
from memoria.monitoring.tenant_metrics import OperationStats, TenantMetrics, with_metrics

__all__ = ["OperationStats", "PerformanceMonitor", "TenantMetrics", "with_metrics"]
