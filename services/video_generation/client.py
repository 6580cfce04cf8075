"""
Seedance Task API Client

Thin async client for the two remote operations:
- submit():       create a generation task, returns a JobHandle
- fetch_status(): one status query, returns a StatusSnapshot

Each call makes exactly one HTTP request and never retries. HTTP and
transport failures are translated into the error taxonomy here, so nothing
above this layer sees httpx exceptions.

Clients are cached per (api_key, model) by an explicit ClientRegistry owned
by the caller instead of a module-level singleton.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx
import pydantic

from core.config import Config, get_config

from .classifier import error_class_for_code
from .errors import (
    AuthenticationError,
    ContentPolicyError,
    NetworkError,
    QuotaError,
    RemoteValidationError,
    VideoGenerationError,
)
from .request_builder import build_payload
from .schemas import ApiErrorBody, CreateTaskResponse, StatusSnapshot
from .types import GenerationRequest, JobHandle

logger = logging.getLogger(__name__)

TASKS_PATH = "/contents/generations/tasks"


def error_from_response(response: httpx.Response, job_id: Optional[str] = None) -> VideoGenerationError:
    """
    Map a non-2xx response to the error taxonomy.

    The structured error body decides first (auth type, content policy and
    quota codes); the HTTP status decides otherwise.
    """
    status = response.status_code
    try:
        body = ApiErrorBody.model_validate(response.json())
        code = body.error.code or None
        message = body.error.message or f"API request failed with status {status}"
        error_type = body.error.type
    except (ValueError, pydantic.ValidationError):
        code, message, error_type = None, f"API request failed with status {status}", ""

    if status in (401, 403) or error_type == "authentication_error":
        return AuthenticationError(message, code=code, status_code=status, job_id=job_id)

    code_class = error_class_for_code(code, message) if code else None
    if code_class in (ContentPolicyError, QuotaError, AuthenticationError):
        return code_class(message, code=code, status_code=status, job_id=job_id)

    if status == 429:
        return QuotaError(message, code=code, status_code=status, job_id=job_id)
    if status >= 500:
        return NetworkError(message, code=code, status_code=status, job_id=job_id)
    return RemoteValidationError(message, code=code, status_code=status, job_id=job_id)


class SeedanceClient:
    """
    Client for the Seedance video task API.

    Usage:
        client = SeedanceClient(api_key="...")

        handle = await client.submit(request)
        snapshot = await client.fetch_status(handle)

        await client.close()
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        config: Optional[Config] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer credential (defaults to SEEDANCE_API_KEY)
            model: Model id or pinned variant (defaults to SEEDANCE_MODEL_ID)
            config: Optional config override
            http_client: Optional shared httpx client (not closed by close())
        """
        self.config = config or get_config()
        self.api_key = (api_key if api_key is not None else self.config.api.seedance_api_key).strip()
        self.model = model or self.config.models.default_model
        self.base_url = self.config.api.seedance_api_base.rstrip("/")

        self._http_client = http_client
        self._owns_http_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.config.api.create_timeout)
        return self._http_client

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._http_client and self._owns_http_client:
            await self._http_client.aclose()
        self._http_client = None

    async def __aenter__(self) -> "SeedanceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise AuthenticationError("API key is required", code="invalid_api_key")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        timeout: float,
        job_id: Optional[str] = None,
        **kwargs,
    ) -> dict[str, Any]:
        headers = self._headers()
        client = await self._get_client()

        try:
            response = await client.request(method, url, headers=headers, timeout=timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Seedance API timeout: {type(e).__name__}",
                code="timeout",
                job_id=job_id,
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(
                f"Seedance API request failed: {type(e).__name__}: {e}",
                code="request_error",
                job_id=job_id,
            ) from e

        if response.is_error:
            error = error_from_response(response, job_id=job_id)
            logger.warning(f"Seedance API {method} {url} -> {response.status_code}: {error.message}")
            raise error

        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(
                f"Seedance API returned a non-JSON body (status {response.status_code})",
                code="malformed_response",
                status_code=response.status_code,
                job_id=job_id,
            ) from e

        if not isinstance(data, dict):
            raise NetworkError(
                "Seedance API returned an unexpected body",
                code="malformed_response",
                status_code=response.status_code,
                job_id=job_id,
            )
        return data

    async def submit(self, request: GenerationRequest) -> JobHandle:
        """
        Create a remote generation task.

        Exactly one POST; a failed submission is raised, never retried.

        Raises:
            AuthenticationError, RemoteValidationError, ContentPolicyError,
            QuotaError, NetworkError
        """
        payload = build_payload(
            request,
            model=self.model,
            execution_expires_after=self.config.jobs.execution_expires_after,
        )

        logger.info(
            f"Seedance create task: model={self.model}, mode={request.mode.value}, "
            f"images={len(request.images)}, prompt={request.prompt[:50]}..."
        )

        data = await self._request(
            "POST",
            f"{self.base_url}{TASKS_PATH}",
            timeout=self.config.api.create_timeout,
            json=payload,
        )

        try:
            created = CreateTaskResponse.model_validate(data)
        except pydantic.ValidationError as e:
            raise NetworkError(
                "No task id in Seedance API response",
                code="malformed_response",
            ) from e

        logger.info(f"Seedance task created: {created.id}")
        return JobHandle(job_id=created.id, model=self.model)

    async def fetch_status(self, handle: Union[JobHandle, str]) -> StatusSnapshot:
        """
        Query a task's status once.

        Raises:
            NetworkError on transport failure, plus the HTTP-derived kinds
        """
        job_id = handle.job_id if isinstance(handle, JobHandle) else handle
        if not job_id or not job_id.strip():
            raise RemoteValidationError("Task ID is required", code="invalid_request")

        data = await self._request(
            "GET",
            f"{self.base_url}{TASKS_PATH}/{job_id}",
            timeout=self.config.api.status_timeout,
            job_id=job_id,
        )

        try:
            snapshot = StatusSnapshot.model_validate(data)
        except pydantic.ValidationError as e:
            raise NetworkError(
                f"Malformed status response for task {job_id}",
                code="malformed_response",
                job_id=job_id,
            ) from e

        logger.debug(f"Seedance task {job_id}: {snapshot.status.value}")
        return snapshot


@dataclass(frozen=True)
class ClientKey:
    api_key: str = field(repr=False)
    model: Optional[str] = None


class ClientRegistry:
    """
    Explicit cache of SeedanceClient instances.

    Usage:
        registry = ClientRegistry(config)
        client = registry.get(api_key, "seedance-1-5-pro-251215")
        ...
        await registry.evict(api_key, "seedance-1-5-pro-251215")
        await registry.aclose()
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or get_config()
        self._http_client = http_client
        self._clients: dict[ClientKey, SeedanceClient] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, key: ClientKey) -> bool:
        return key in self._clients

    def get(self, api_key: str, model: Optional[str] = None) -> SeedanceClient:
        """Get or create the client for a credential and model variant."""
        key = ClientKey(api_key, model)
        client = self._clients.get(key)
        if client is None:
            client = SeedanceClient(
                api_key=api_key,
                model=model,
                config=self.config,
                http_client=self._http_client,
            )
            self._clients[key] = client
        return client

    async def evict(self, api_key: str, model: Optional[str] = None) -> bool:
        """Drop and close one cached client. Returns False if it was absent."""
        client = self._clients.pop(ClientKey(api_key, model), None)
        if client is None:
            return False
        await client.close()
        return True

    async def aclose(self):
        """Close and drop every cached client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()
