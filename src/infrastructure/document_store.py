"""
Document Store Module

Async key-path document stores backing the repository.

Paths are slash-separated ("employees/abc123"). Two backends share one
interface: an in-memory tree for tests and offline use, and a
Realtime-Database style REST client built on httpx.
"""

import copy
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from config.config_manager import StoreSettings
from domain.entities import new_id
from domain.exceptions import StoreError
from infrastructure.logger import get_logger

logger = get_logger("DocumentStore")


def _split(path: str) -> list:
    return [part for part in path.strip("/").split("/") if part]


@runtime_checkable
class DocumentStore(Protocol):
    """Interface used by the repository."""

    async def get(self, path: str) -> Any: ...

    async def set(self, path: str, value: Any) -> None: ...

    async def update(self, path: str, patch: Dict[str, Any]) -> None: ...

    async def remove(self, path: str) -> None: ...

    def push_key(self, path: str) -> str: ...


class InMemoryDocumentStore:
    """
    Document tree held in a nested dict.

    Values are deep-copied on the way in and out so callers never share
    structure with the store.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._root: Dict[str, Any] = copy.deepcopy(data) if data else {}

    @property
    def data(self) -> Dict[str, Any]:
        return copy.deepcopy(self._root)

    def _node(self, parts: list, create: bool = False) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict):
                return None
            if part not in node:
                if not create:
                    return None
                node[part] = {}
            node = node[part]
        return node

    async def get(self, path: str) -> Any:
        return copy.deepcopy(self._node(_split(path)))

    async def set(self, path: str, value: Any) -> None:
        parts = _split(path)
        if not parts:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        if value is None:
            await self.remove(path)
            return
        parent = self._node(parts[:-1], create=True)
        if not isinstance(parent, dict):
            raise StoreError(path, "parent node is not an object")
        parent[parts[-1]] = copy.deepcopy(value)

    async def update(self, path: str, patch: Dict[str, Any]) -> None:
        """Write each key of the patch as a child path; None deletes."""
        base = path.strip("/")
        for key, value in patch.items():
            await self.set(f"{base}/{key}" if base else key, value)

    async def remove(self, path: str) -> None:
        parts = _split(path)
        if not parts:
            self._root = {}
            return
        parent = self._node(parts[:-1])
        if isinstance(parent, dict):
            parent.pop(parts[-1], None)

    def push_key(self, path: str) -> str:
        return new_id()


class FirebaseRestStore:
    """
    Realtime-Database REST client.

    Each path maps to `{base_url}/{path}.json`; reads are GET, writes PUT,
    partial updates PATCH and removals DELETE. The http client lifecycle
    is managed by the caller.

    Args:
        http_client: Shared httpx.AsyncClient (required)
        base_url: Database URL, e.g. https://project.firebaseio.com
        auth_token: Optional database secret or ID token sent as `auth`
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 30.0
    ):
        if http_client is None:
            raise ValueError("http_client is required for the REST document store")
        if not base_url:
            raise ValueError("base_url is required for the REST document store")
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{'/'.join(_split(path))}.json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self._auth_token} if self._auth_token else {}

    async def _request(self, method: str, path: str, payload: Any = None) -> httpx.Response:
        kwargs: Dict[str, Any] = {"params": self._params(), "timeout": self._timeout}
        if payload is not None:
            kwargs["json"] = payload
        try:
            response = await self._client.request(method, self._url(path), **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.error(f"Store {method} {path} failed: {e.response.status_code} - {e.response.text}")
            raise StoreError(path, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Store {method} {path} failed: {e}")
            raise StoreError(path, str(e) or type(e).__name__) from e

    async def get(self, path: str) -> Any:
        response = await self._request("GET", path)
        return response.json()

    async def set(self, path: str, value: Any) -> None:
        if value is None:
            await self.remove(path)
            return
        await self._request("PUT", path, value)

    async def update(self, path: str, patch: Dict[str, Any]) -> None:
        await self._request("PATCH", path, patch)

    async def remove(self, path: str) -> None:
        await self._request("DELETE", path)

    def push_key(self, path: str) -> str:
        return new_id()


def create_store(
    settings: StoreSettings,
    http_client: Optional[httpx.AsyncClient] = None
) -> DocumentStore:
    """
    Build the document store selected by the settings.

    Raises:
        ValueError: For an unknown backend or a REST backend without client
    """
    backend = (settings.backend or "memory").lower()
    if backend == "memory":
        logger.info("Using in-memory document store")
        return InMemoryDocumentStore()
    if backend == "firebase":
        logger.info(f"Using REST document store at {settings.base_url}")
        return FirebaseRestStore(
            http_client=http_client,
            base_url=settings.base_url,
            auth_token=settings.auth_token or None,
            timeout=settings.timeout
        )
    raise ValueError(f"Unknown store backend: {settings.backend}")
