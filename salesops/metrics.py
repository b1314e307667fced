"""Prometheus metrics shared by the API and the automation engine."""

from prometheus_client import Counter, Histogram

api_requests_total = Counter('api_requests_total', 'Total API requests', ['method', 'endpoint', 'status'])
api_request_duration = Histogram('api_request_duration_seconds', 'API request duration')
automation_dispatches_total = Counter('automation_dispatches_total', 'Automation dispatches', ['trigger_type', 'status'])
automation_steps_total = Counter('automation_steps_total', 'Automation steps attempted', ['action_type', 'outcome'])
confirmation_attempts_total = Counter('confirmation_attempts_total', 'Confirmation attempts', ['outcome'])


def observe_dispatch(result) -> None:
    trigger = result.trigger_type.value if result.trigger_type else "unknown"
    automation_dispatches_total.labels(trigger_type=trigger, status=result.status).inc()
    for log in result.steps_executed:
        automation_steps_total.labels(
            action_type=log.action_type,
            outcome="skipped" if log.skipped else "executed",
        ).inc()
