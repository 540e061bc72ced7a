"""Tests for rolling service metrics and aggregate health."""

from datetime import datetime, timezone

from questops.models import AlertThresholds, OverallStatus, ServiceHealthStatus
from questops.monitor.metrics import MAX_RESPONSE_SAMPLES, ServiceMetrics, calculate_overall_health

NOW = datetime(2025, 2, 11, 12, 0, 0, tzinfo=timezone.utc)


def _metrics(successes: int = 0, failures: int = 0, status=None) -> ServiceMetrics:
    m = ServiceMetrics()
    for _ in range(successes):
        m.record_success(100)
    for _ in range(failures):
        m.record_failure()
    m.finish_check(NOW)
    if status is not None:
        m.status = status
    return m


def test_fresh_metrics():
    m = ServiceMetrics()
    assert m.status == ServiceHealthStatus.UNKNOWN
    assert m.availability == 1.0
    assert m.average_response_time() == 0
    assert m.p95_response_time() == 0
    assert m.error_rate() == 0
    assert m.last_check is None


def test_response_time_buffer_is_capped_newest_last():
    m = ServiceMetrics()
    for i in range(MAX_RESPONSE_SAMPLES + 20):
        m.record_success(i)
    assert len(m.response_times) == MAX_RESPONSE_SAMPLES
    assert m.response_times[0] == 20
    assert m.response_times[-1] == MAX_RESPONSE_SAMPLES + 19


def test_availability_counts_every_poll():
    m = _metrics(successes=94, failures=6)
    assert m.total_requests == 100
    assert m.error_count == 6
    assert m.availability == 0.94
    assert m.error_rate() == 0.06
    assert m.last_check == NOW
    # failures contribute no response-time samples
    assert len(m.response_times) == 94


def test_consecutive_failures_reset_on_success():
    m = ServiceMetrics()
    m.record_failure()
    m.record_failure()
    assert m.consecutive_failures == 2
    assert m.status == ServiceHealthStatus.UNHEALTHY
    m.record_success(50)
    assert m.consecutive_failures == 0
    assert m.status == ServiceHealthStatus.HEALTHY


def test_average_and_p95():
    m = ServiceMetrics()
    for ms in range(1, 21):
        m.record_success(ms)
    assert m.average_response_time() == 10  # round(10.5) banker's rounding
    assert m.p95_response_time() == 20


def test_overall_healthy():
    metrics = {"a": _metrics(successes=10), "b": _metrics(successes=10)}
    health = calculate_overall_health(metrics, AlertThresholds())
    assert health.status == OverallStatus.HEALTHY
    assert health.services_online == 2
    assert health.service_count == 2
    assert health.avg_availability == 100.0
    assert health.total_requests == 20
    assert health.total_errors == 0


def test_overall_degraded_when_one_of_two_down():
    metrics = {"a": _metrics(successes=10), "b": _metrics(successes=9, failures=1)}
    health = calculate_overall_health(metrics, AlertThresholds())
    assert health.status == OverallStatus.DEGRADED
    assert health.services_online == 1


def test_overall_degraded_on_error_rate_with_all_online():
    metrics = {"a": _metrics(successes=8, failures=2, status=ServiceHealthStatus.HEALTHY)}
    health = calculate_overall_health(metrics, AlertThresholds(error_rate=0.05))
    assert health.status == OverallStatus.DEGRADED


def test_overall_critical_when_under_half_online():
    metrics = {
        "a": _metrics(successes=10),
        "b": _metrics(failures=1),
        "c": _metrics(failures=1),
    }
    health = calculate_overall_health(metrics, AlertThresholds())
    assert health.status == OverallStatus.CRITICAL
    assert health.services_online == 1


def test_critical_takes_precedence_over_high_error_rate():
    metrics = {
        "a": _metrics(successes=1, failures=9),
        "b": _metrics(failures=1),
        "c": _metrics(failures=1),
    }
    health = calculate_overall_health(metrics, AlertThresholds(error_rate=0.05))
    assert health.status == OverallStatus.CRITICAL


def test_unknown_services_are_not_online():
    metrics = {"a": ServiceMetrics(), "b": ServiceMetrics()}
    health = calculate_overall_health(metrics, AlertThresholds())
    assert health.status == OverallStatus.CRITICAL
    assert health.avg_availability == 100.0
