"""
Delivery-provider (Onfleet) task API client.

Thin wrapper over the v2 REST API with HTTP basic auth (API key as username,
empty password). Every transport or HTTP failure surfaces as
IntegrationFailure so callers never see requests exceptions.
"""

import logging
from typing import Any, Dict

import requests

from core.exceptions import IntegrationFailure

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://onfleet.com/api/v2"


class OnfleetClient:
    """
    Delivery-provider task client.

    Usage:
        client = OnfleetClient(api_key)
        task = client.fetch_task_by_short_id("a1b2c3d4")
        client.update_task(task["id"], {"completeAfter": 1718000000000})
    """

    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 10):
        if not api_key:
            raise ValueError("api_key is required")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()
        self._session.auth = (api_key, "")
        self._session.headers.update({"Content-Type": "application/json"})

    def _request(self, method: str, path: str, json: Dict[str, Any] | None = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"

        try:
            response = self._session.request(method, url, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Onfleet {method} {path} connection failed: {e}")
            raise IntegrationFailure(f"Delivery provider unreachable: {e}")

        if not response.ok:
            logger.error(f"Onfleet {method} {path} failed ({response.status_code}): {response.text}")
            raise IntegrationFailure(
                f"Delivery provider error ({response.status_code}) on {method} {path}"
            )

        try:
            return response.json()
        except ValueError:
            logger.error(f"Onfleet {method} {path} returned invalid JSON: {response.text}")
            raise IntegrationFailure("Invalid response from delivery provider")

    def fetch_task(self, task_id: str) -> Dict[str, Any]:
        """Fetch a task by its provider id."""
        return self._request("GET", f"/tasks/{task_id}")

    def fetch_task_by_short_id(self, short_id: str) -> Dict[str, Any] | None:
        """
        Fetch a task by its short id.

        Returns None for an empty short id (unit has no task for that step).
        """
        if not short_id:
            return None
        return self._request("GET", f"/tasks/shortId/{short_id}")

    def create_task(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a task. Returns the provider's task record (with id and shortId)."""
        task = self._request("POST", "/tasks", json=payload)
        logger.info(f"Created Onfleet task {task.get('id')} ({task.get('shortId')})")
        return task

    def update_task(self, task_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Partially update a task (time window, worker, destination, metadata)."""
        task = self._request("PUT", f"/tasks/{task_id}", json=payload)
        logger.info(f"Updated Onfleet task {task_id}: {sorted(payload)}")
        return task
