#!/usr/bin/env python3
"""
Admin Batch API Client
======================

HTTP client for the panel's /api/admin/batch endpoints, used by the
utils/batch_tool.py CLI and by scripts that drive bulk edits remotely.

Usage:
    from admin_client import AdminBatchClient, AdminClientError

    client = AdminBatchClient()  # URL, admin key and session cookie from config
    preview = client.preview({
        "mode": "query",
        "collection": "ingredients",
        "filters": {"field": "tags", "mode": "tags_any", "value": ["stale"]},
        "operation": {"type": "tags_remove", "payload": {"remove": ["stale"]}},
    })
    job = client.commit({**body, "selectIds": ["ing-1"]})
    final = client.wait_for_job(job["jobId"])

Architecture:
    AdminBatchClient
    ├── Connection pooling via requests.Session
    ├── Retries with backoff for GET only (commit/rollback are not idempotent)
    └── X-Admin-Key header + session cookie on every request
"""

import time
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import get_client_config, load_admin_api_key, load_session_cookie
from tools.logging_utils import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/admin/batch"
SESSION_COOKIE_NAME = "session"
TERMINAL_STATUSES = ("done", "failed")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class AdminClientError(Exception):
    """
    Base exception for admin client errors.

    Attributes:
        message: Human-readable error description
        operation: The request that failed (e.g., "POST /commit")
        details: Additional context
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.insert(0, f"[{self.operation}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class AdminAPIError(AdminClientError):
    """HTTP error response from the panel."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        details = {}
        if status_code is not None:
            details['status_code'] = status_code
        super().__init__(message, operation=operation, details=details)


class JobWaitTimeout(AdminClientError):
    """A job did not reach done/failed before the wait deadline."""


# =============================================================================
# CLIENT
# =============================================================================

class AdminBatchClient:
    """Client for the admin batch endpoints."""

    RETRY_TOTAL = 3
    RETRY_BACKOFF_FACTOR = 0.5
    RETRY_STATUS_FORCELIST = [500, 502, 503, 504]

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: Optional[str] = None,
        admin_key: Optional[str] = None,
        session_cookie: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Args:
            base_url: Panel URL (default: client.panel_url from config.yaml)
            admin_key: Shared admin key (default: ADMIN_API_KEY / secrets.yaml)
            session_cookie: Signed session cookie of an admin user
                (default: BARBACK_SESSION_COOKIE / secrets.yaml)
            timeout: Request timeout in seconds
        """
        client_cfg = get_client_config()
        self.base_url = (base_url or client_cfg['panel_url']).rstrip('/')
        self.timeout = timeout or client_cfg.get('timeout') or self.DEFAULT_TIMEOUT

        self.session = requests.Session()
        retry_strategy = Retry(
            total=self.RETRY_TOTAL,
            backoff_factor=self.RETRY_BACKOFF_FACTOR,
            status_forcelist=self.RETRY_STATUS_FORCELIST,
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        key = admin_key if admin_key is not None else load_admin_api_key()
        self.session.headers.update({
            'X-Admin-Key': key or '',
            'Content-Type': 'application/json',
        })
        cookie = session_cookie if session_cookie is not None else load_session_cookie()
        if cookie:
            self.session.cookies.set(SESSION_COOKIE_NAME, cookie)

        logger.debug(f"AdminBatchClient initialized: base_url={self.base_url}")

    def close(self) -> None:
        """Clean up connections."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        """
        Perform an HTTP request against the batch API.

        Raises:
            AdminAPIError: On an HTTP error status (message taken from the JSON body)
            AdminClientError: On timeouts and network errors
        """
        url = f"{self.base_url}{API_PREFIX}{endpoint}"
        operation = f"{method} {endpoint}"

        try:
            response = self.session.request(method, url, json=data, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise AdminClientError(
                f"Request timed out after {self.timeout}s",
                operation=operation,
            )
        except requests.exceptions.RequestException as e:
            raise AdminClientError(f"Network error: {e}", operation=operation)

        if response.status_code >= 400:
            message = f"HTTP {response.status_code}"
            try:
                message = response.json().get('error') or message
            except ValueError:
                pass
            raise AdminAPIError(
                message,
                operation=operation,
                status_code=response.status_code,
                response_body=response.text,
            )

        if response.status_code == 204 or not response.text:
            return {}
        return response.json()

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def preview(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/preview", body)

    def commit(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/commit", body)

    def list_jobs(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/jobs")

    def get_job(self, job_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/jobs/{job_id}")

    def rollback(self, job_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/jobs/{job_id}/rollback")

    def list_rows(self, collection: str) -> List[Dict[str, str]]:
        """Export rows for 'cocktails' or 'ingredients'."""
        if collection not in ("cocktails", "ingredients"):
            raise AdminClientError(f"Unknown collection '{collection}'", operation="list_rows")
        return self._request("GET", f"/list-{collection}")

    def wait_for_job(
        self,
        job_id: str,
        poll_interval: float = 2.0,
        timeout: float = 600.0,
        sleep=time.sleep,
    ) -> Dict[str, Any]:
        """
        Poll a job until it is done or failed.

        Raises:
            JobWaitTimeout: If the job is still running after `timeout` seconds
        """
        deadline = time.monotonic() + timeout
        while True:
            job = self.get_job(job_id)
            if job.get('status') in TERMINAL_STATUSES:
                return job
            if time.monotonic() >= deadline:
                raise JobWaitTimeout(
                    f"Job still {job.get('status')} after {timeout}s",
                    operation="wait_for_job",
                    details={'job_id': job_id},
                )
            sleep(poll_interval)
