import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from core import (
    BatchMutationError,
    FieldDescriptor,
    LookupValue,
    SaveFailure,
    Task,
    TaskTreeError,
    TransientFetchFailure,
    UserRef,
    ValidationRejection,
)

logger = logging.getLogger("task_tree.store")

ROOT_PAGE_SIZE = 50


class ApiError(TaskTreeError):
    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status = status
        self.payload = payload or {}

    @property
    def is_validation(self) -> bool:
        return self.status in (400, 422)


class TaskApiClient:
    """Blocking REST client; only idempotent reads are retried."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: int = 30,
        max_attempts: int = 3,
        backoff: float = 0.5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.token_provider = token_provider or (lambda: None)
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff = backoff

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        unwrap: bool = True,
    ) -> Any:
        url = f"{self.base_url}{path}"
        retryable = method.upper() == "GET"
        attempt = 0
        delay = self.backoff
        while True:
            attempt += 1
            try:
                response = self.session.request(
                    method, url, params=params, json=body, headers=self._headers(), timeout=self.timeout
                )
            except requests.RequestException as exc:
                if retryable and attempt < self.max_attempts:
                    self._sleep(delay)
                    delay *= 2
                    continue
                raise ApiError(f"Network error: {exc}") from exc
            if response.status_code >= 500 and retryable and attempt < self.max_attempts:
                self._sleep(delay)
                delay *= 2
                continue
            if response.status_code >= 400:
                payload = self._error_payload(response)
                raise ApiError(self._error_message(response, payload), response.status_code, payload)
            if response.status_code == 204 or not response.content:
                return None
            payload = response.json()
            if unwrap and isinstance(payload, dict) and "data" in payload:
                return payload["data"]
            return payload

    def _sleep(self, base_delay: float) -> None:
        if base_delay <= 0:
            return
        time.sleep(base_delay + random.uniform(0, base_delay))

    @staticmethod
    def _error_payload(response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def _error_message(response, payload: Dict[str, Any]) -> str:
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if payload.get("message"):
            return str(payload["message"])
        return f"HTTP {response.status_code}"


def _validation(exc: ApiError, fallback_field: str = "") -> ValidationRejection:
    error = exc.payload.get("error") if isinstance(exc.payload.get("error"), dict) else exc.payload
    field_path = str(error.get("field") or fallback_field)
    return ValidationRejection(field_path, str(exc))


def _total_pages(pagination: Dict[str, Any], page_size: int) -> int:
    try:
        pages = int(pagination.get("totalPages") or 0)
        if not pages and pagination.get("total"):
            limit = int(pagination.get("limit") or page_size)
            pages = -(-int(pagination["total"]) // max(limit, 1))
    except (TypeError, ValueError):
        return 1
    return pages or 1


def _filter_params(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    # Lists go out as repeated keys (status=a&status=b).
    params: Dict[str, Any] = {}
    for key, value in (filters or {}).items():
        if value is None or value == "" or value == [] or value is False:
            continue
        if value is True:
            params[key] = "true"
        else:
            params[key] = list(value) if isinstance(value, (list, tuple, set)) else value
    return params


class HttpTaskStore:
    """TaskStore, SchemaProvider and LookupProvider over the REST API."""

    def __init__(self, client: TaskApiClient, page_size: int = ROOT_PAGE_SIZE) -> None:
        self.client = client
        self.page_size = page_size

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        return await asyncio.to_thread(self.client.request, method, path, **kwargs)

    async def _read(self, path: str, params: Optional[Dict[str, Any]] = None, unwrap: bool = True) -> Any:
        try:
            return await self._call("GET", path, params=params, unwrap=unwrap)
        except ApiError as exc:
            logger.warning("GET %s failed: %s", path, exc)
            raise TransientFetchFailure(str(exc)) from exc

    # --- TaskStore ---------------------------------------------------------------

    async def list_roots(
        self,
        sort_by: str = "",
        sort_order: str = "asc",
        search: str = "",
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Task]:
        """Every root task, following ``pagination`` page by page."""
        params: Dict[str, Any] = {
            "rootOnly": "true",
            "resolveReferences": "true",
            "limit": self.page_size,
        }
        if sort_by:
            params["sortBy"] = sort_by
            params["sortOrder"] = sort_order
        if search:
            params["search"] = search
        params.update(_filter_params(filters))
        roots: List[Task] = []
        page = 1
        while True:
            payload = await self._read("/tasks", dict(params, page=page), unwrap=False)
            if isinstance(payload, dict):
                items = payload.get("data") or []
                pagination = payload.get("pagination") or {}
            else:
                items, pagination = payload or [], {}
            roots.extend(Task.from_dict(item) for item in items)
            if not items or page >= _total_pages(pagination, self.page_size):
                return roots
            page += 1

    async def list_children(self, parent_id: str) -> List[Task]:
        data = await self._read(f"/tasks/{parent_id}/children")
        return [Task.from_dict(item) for item in data or []]

    async def update_one(self, task_id: str, fields: Dict[str, Any]) -> Task:
        try:
            data = await self._call("PATCH", f"/tasks/{task_id}", body=fields)
        except ApiError as exc:
            if exc.is_validation:
                raise _validation(exc, next(iter(fields), "")) from exc
            raise SaveFailure(str(exc), task_id) from exc
        return Task.from_dict(data)

    async def create_one(self, fields: Dict[str, Any]) -> Task:
        try:
            data = await self._call("POST", "/tasks", body=fields)
        except ApiError as exc:
            if exc.is_validation:
                raise _validation(exc) from exc
            raise SaveFailure(str(exc)) from exc
        return Task.from_dict(data)

    async def update_many(self, task_ids: Sequence[str], fields: Dict[str, Any]) -> None:
        await self._bulk({"operation": "update", "taskIds": list(task_ids), "updates": fields})

    async def delete_many(self, task_ids: Sequence[str]) -> None:
        await self._bulk({"operation": "delete", "taskIds": list(task_ids)})

    async def _bulk(self, body: Dict[str, Any]) -> None:
        try:
            await self._call("POST", "/tasks/bulk", body=body)
        except ApiError as exc:
            raise BatchMutationError(f"Bulk {body['operation']} failed: {exc}", body["taskIds"]) from exc

    # --- SchemaProvider ----------------------------------------------------------

    async def fields_for(self, collection: str) -> List[FieldDescriptor]:
        data = await self._read(f"/field-configs/{collection}")
        return [FieldDescriptor.from_dict(item) for item in data or []]

    # --- LookupProvider ----------------------------------------------------------

    async def lookups(self) -> Dict[str, List[LookupValue]]:
        data = await self._read("/lookups") or {}
        result: Dict[str, List[LookupValue]] = {}
        for lookup_type, items in data.items():
            values = [LookupValue.from_dict(item) for item in items or []]
            result[lookup_type] = sorted((v for v in values if v.is_active), key=lambda v: v.sort_order)
        return result

    async def users(self) -> List[UserRef]:
        data = await self._read("/users")
        users = []
        for item in data or []:
            users.append(
                UserRef(
                    id=str(item.get("_id") or item.get("id")),
                    display_name=str(item.get("displayName") or item.get("email") or ""),
                    email=str(item.get("email") or ""),
                )
            )
        return users

    async def search(self, query: str, limit: int = 20) -> List[Task]:
        params: Dict[str, Any] = {"limit": limit}
        if query:
            params["search"] = query
        data = await self._read("/tasks", params)
        return [Task.from_dict(item) for item in data or []]


__all__ = ["HttpTaskStore", "TaskApiClient", "ApiError"]
