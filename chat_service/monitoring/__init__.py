"""
Monitoring and health check services.
"""

from chat_service.monitoring.service_monitor import ServiceMonitor, MonitoringServer

__all__ = ["ServiceMonitor", "MonitoringServer"]
