"""Prometheus metrics shared by the photo service and routes."""

from prometheus_client import Counter

from .config import get_settings

_NAMESPACE = get_settings().metrics_namespace

UPLOAD_ATTEMPTS = Counter(
    "photo_upload_attempts_total",
    "Total number of photo save attempts",
    namespace=_NAMESPACE,
)
UPLOAD_SUCCESSES = Counter(
    "photo_upload_success_total",
    "Total number of photos saved (original uploaded and row inserted)",
    namespace=_NAMESPACE,
)
UPLOAD_FAILURES = Counter(
    "photo_upload_failure_total",
    "Total number of failed photo saves",
    ["stage"],
    namespace=_NAMESPACE,
)
ORPHAN_CLEANUP_FAILURES = Counter(
    "photo_orphan_cleanup_failure_total",
    "Originals left in storage because the row insert failed and cleanup failed too",
    namespace=_NAMESPACE,
)
STORAGE_DELETE_FAILURES = Counter(
    "photo_storage_delete_failure_total",
    "Rows deleted whose original could not be removed from storage",
    namespace=_NAMESPACE,
)
AUTH_FAILURES = Counter(
    "photo_auth_failures_total",
    "Write attempts rejected for lack of the admin claim",
    namespace=_NAMESPACE,
)
