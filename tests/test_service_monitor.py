from chat_service.monitoring.service_monitor import MonitoringServer, ServiceMonitor


def test_metrics_accumulate():
    monitor = ServiceMonitor()
    monitor.record_request()
    monitor.record_request()
    monitor.record_exchange(1.0)
    monitor.record_exchange(3.0)
    monitor.record_error()
    monitor.record_error(timeout=True)
    monitor.record_degraded_decode()

    metrics = monitor.get_metrics()
    assert metrics["requests"] == 2
    assert metrics["exchanges"] == 2
    assert metrics["errors"] == 2
    assert metrics["timeouts"] == 1
    assert metrics["degraded_decodes"] == 1
    assert metrics["avg_processing_time_seconds"] == 2.0
    assert metrics["uptime_seconds"] >= 0


def test_average_without_exchanges():
    assert ServiceMonitor().get_metrics()["avg_processing_time_seconds"] == 0.0


def test_monitoring_routes():
    monitor = ServiceMonitor()
    monitor.record_request()
    server = MonitoringServer(monitor=monitor, history_size=lambda: 6)
    client = server.app.test_client()

    metrics = client.get("/metrics").get_json()
    assert metrics["requests"] == 1
    assert metrics["history_size"] == 6

    assert client.get("/health/ready").get_json() == {"status": "ready"}
    assert client.get("/health/live").get_json() == {"status": "live"}
    assert client.get("/info").get_json()["service"] == "chat-service"

    health = client.get("/health").get_json()
    assert health["status"] == "healthy"
    assert "cpu_percent" in health["system"]


def test_metrics_without_history_callback():
    client = MonitoringServer().app.test_client()
    assert "history_size" not in client.get("/metrics").get_json()
