from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

crm_read_fanout_duration_seconds = Histogram(
    "crm_read_fanout_duration_seconds",
    "Wall time of concurrent CRM read batches in seconds",
    ["mode"],
)

crm_orphaned_calls_total = Counter(
    "crm_orphaned_calls_total",
    "Calls referencing an opportunity outside the requested account",
    ["policy"],
)

crm_scope_resolutions_total = Counter(
    "crm_scope_resolutions_total",
    "Role scope resolutions by role and outcome",
    ["role", "scope"],
)


_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")
# Salesforce (15/18 char), Gong (numeric) and uuid ids all contain a digit.
_ID_SEGMENT_RE = re.compile(r"^(?=[^/]*\d)[A-Za-z0-9-]{6,}$|^\d+$")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    segments = ["{id}" if _ID_SEGMENT_RE.match(segment) else segment for segment in path.split("/")]
    return "/".join(segments)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_read_fanout(mode: str, duration: float) -> None:
    crm_read_fanout_duration_seconds.labels(mode=mode).observe(duration)


def observe_orphaned_calls(policy: str, count: int) -> None:
    if count > 0:
        crm_orphaned_calls_total.labels(policy=policy).inc(count)


def observe_scope_resolution(role: str, scope: str) -> None:
    crm_scope_resolutions_total.labels(role=role, scope=scope).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
