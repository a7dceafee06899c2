"""Python client for the task API.

Wraps the HTTP endpoints and unpacks the response envelope, raising
TaskApiError (or DuplicateTaskError for 409s) on failure.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class TaskApiError(Exception):
    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details


class DuplicateTaskError(TaskApiError):
    """The API refused a title that another task already holds"""

    def __init__(self, status_code: int, message: str, code: Optional[str], existing_task_id: Optional[str]):
        super().__init__(status_code, message, code)
        self.existing_task_id = existing_task_id


class TaskClient:
    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self._owns_http = http is None
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "TaskClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = self._http.request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_success:
            return body

        error = body.get("error") or {}
        message = error.get("message") or body.get("message") or f"Request failed ({response.status_code})"
        code = error.get("code")
        logger.debug("%s %s failed: %s %s", method, path, response.status_code, code)

        if response.status_code == 409:
            raise DuplicateTaskError(response.status_code, message, code, error.get("existingTaskId"))
        raise TaskApiError(response.status_code, message, code, error.get("details"))

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/api/health")

    def list_tasks(self) -> List[Dict[str, Any]]:
        """Fetch all tasks, newest first"""
        return self._request("GET", "/api/tasks")["data"]

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/tasks/{task_id}")["data"]

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        completed: bool = False,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"title": title, "completed": completed}
        if description is not None:
            payload["description"] = description
        return self._request("POST", "/api/tasks", json=payload)["data"]

    def update_task(
        self,
        task_id: str,
        title: Any = _UNSET,
        description: Any = _UNSET,
        completed: Any = _UNSET,
    ) -> Dict[str, Any]:
        """Send only the fields that were given"""
        payload = {
            key: value
            for key, value in (("title", title), ("description", description), ("completed", completed))
            if value is not _UNSET
        }
        return self._request("PUT", f"/api/tasks/{task_id}", json=payload)["data"]

    def toggle_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        """Flip the completed flag of a task as last seen by the caller"""
        return self.update_task(task["_id"], completed=not task["completed"])

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/api/tasks/{task_id}")
