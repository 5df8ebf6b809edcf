"""Prometheus text metrics for the vault API and its batch jobs.

Requests are counted per route group (``admin`` or ``public``) and status
class; batch jobs report per-record outcomes and run durations.
"""
import logging
import time
from collections import defaultdict

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 0.5

# Simple in-memory metrics (replace with prometheus_client in production)
_requests: dict[tuple[str, str], float] = defaultdict(float)
_durations: dict[str, list[float]] = defaultdict(list)
_job_outcomes: dict[tuple[str, str], float] = defaultdict(float)
_job_durations: dict[str, list[float]] = defaultdict(list)


def _route_group(path: str) -> str:
    return "admin" if "/admin/" in path else "public"


def record_job_summary(job: str, duration: float | None = None, **outcomes: int) -> None:
    """Accumulate record outcomes (migrated/rotated/skipped/errors) for a job run."""
    _job_outcomes[(job, "runs")] += 1
    for outcome, count in outcomes.items():
        _job_outcomes[(job, outcome)] += count
    if duration is not None:
        _job_durations[job].append(duration)


def job_outcome(job: str, outcome: str) -> float:
    return _job_outcomes.get((job, outcome), 0.0)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests and latency per route group."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        group = _route_group(request.url.path)
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start
            _requests[(group, f"{status // 100}xx")] += 1
            _durations[group].append(duration)
            # Admin calls run whole batches and are expected to be slow
            if group == "public" and duration > SLOW_REQUEST_SECONDS:
                logger.warning(
                    "Slow request: %s %s took %.0fms (status %d)",
                    request.method, request.url.path, duration * 1000, status,
                )


def _percentile(data: list[float], p: float) -> float:
    if not data:
        return 0.0
    sorted_data = sorted(data)
    idx = int(len(sorted_data) * p / 100)
    return sorted_data[min(idx, len(sorted_data) - 1)]


def _summary_lines(name: str, label: str, series: dict[str, list[float]]) -> list[str]:
    lines = []
    for key, values in sorted(series.items()):
        for quantile in (50, 95):
            lines.append(
                f'{name}{{{label}="{key}",quantile="0.{quantile}"}} {_percentile(values, quantile):.6f}'
            )
        lines.append(f'{name}_count{{{label}="{key}"}} {len(values)}')
    return lines


def render_metrics() -> str:
    lines = [
        "# HELP http_requests_total HTTP requests by route group and status class",
        "# TYPE http_requests_total counter",
    ]
    lines += [
        f'http_requests_total{{group="{group}",status="{status}"}} {value:.0f}'
        for (group, status), value in sorted(_requests.items())
    ]
    lines += [
        "",
        "# HELP http_request_duration_seconds Request duration",
        "# TYPE http_request_duration_seconds summary",
        *_summary_lines("http_request_duration_seconds", "group", _durations),
        "",
        "# HELP token_vault_job_records_total Records processed by vault batch jobs",
        "# TYPE token_vault_job_records_total counter",
    ]
    lines += [
        f'token_vault_job_records_total{{job="{job}",outcome="{outcome}"}} {value:.0f}'
        for (job, outcome), value in sorted(_job_outcomes.items())
    ]
    lines += [
        "",
        "# HELP token_vault_job_duration_seconds Batch job run duration",
        "# TYPE token_vault_job_duration_seconds summary",
        *_summary_lines("token_vault_job_duration_seconds", "job", _job_durations),
    ]
    return "\n".join(lines) + "\n"


def setup_metrics(app: FastAPI) -> None:
    """Register the /metrics endpoint."""

    @app.get("/metrics", tags=["monitoring"], include_in_schema=False)
    async def metrics_endpoint():
        return PlainTextResponse(render_metrics(), media_type="text/plain")
