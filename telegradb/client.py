"""Telegraph API client implementing the RemoteStore interface."""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .exceptions import (
    APIError,
    AuthenticationError,
    NetworkError,
    ValidationError,
)
from .models import HOLDER_FIELD, TIMESTAMP_FIELD, Account

logger = logging.getLogger("telegradb.client")

DEFAULT_BASE_URL = "https://api.telegra.ph"


class AsyncTelegraphClient:
    """Async Telegraph client.

    The lock uses the account's ``short_name`` and ``author_name`` fields;
    documents are pages holding a single ``code`` node of text.
    """

    def __init__(
        self,
        token: str = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient = None,
    ):
        """Initialize the async Telegraph client.

        Args:
            token: Account access token
            base_url: The base URL of the Telegraph API
            timeout: HTTP timeout in seconds
            http_client: Preconfigured client, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    def _validate_fields(self, values: Dict[str, str]) -> None:
        """Validate account field lengths."""
        short_name = values.get(TIMESTAMP_FIELD)
        if short_name is not None and not 1 <= len(short_name) <= 32:
            raise ValidationError("short_name must be 1-32 characters")
        author_name = values.get(HOLDER_FIELD)
        if author_name is not None and len(author_name) > 128:
            raise ValidationError("author_name must be at most 128 characters")

    def _validate_title(self, title: str) -> None:
        """Validate page title length."""
        if not title or len(title) > 256:
            raise ValidationError("Page title must be 1-256 characters")

    def _validate_path(self, path: str) -> None:
        """Validate that a page path was given."""
        if not path:
            raise ValidationError("Page path must not be empty")

    def _require_token(self) -> None:
        """Ensure an access token is set."""
        if not self.token:
            raise ValidationError("An access token is required for this call")

    async def _handle_response(self, response: httpx.Response) -> Any:
        """Unwrap the ``{"ok": ..., "result": ...}`` envelope."""
        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(f"Failed to parse response (HTTP {response.status_code}): {e}")

        if not isinstance(data, dict):
            raise NetworkError(f"Unexpected response body: {data!r}")
        if not data.get("ok"):
            error = data.get("error", f"HTTP {response.status_code}")
            if error == "ACCESS_TOKEN_INVALID":
                raise AuthenticationError("Invalid or missing access token", code=error)
            raise APIError(error, code=error)
        return data.get("result")

    async def _call(self, method: str, params: Dict[str, Any]) -> Any:
        """POST ``params`` to an API method and return its result."""
        try:
            response = await self.client.post(f"{self.base_url}/{method}", json=params)
        except httpx.RequestError as e:
            raise NetworkError(f"Network error calling {method}: {e}")
        return await self._handle_response(response)

    async def _safe_call(
        self,
        method: str,
        params: Dict[str, Any],
        validate: Callable[[], None] = None,
    ) -> Any:
        """Authenticated :meth:`_call` that logs and returns None on any failure.

        Args:
            method: API method name
            params: Request body without the access token
            validate: Check run before sending; a rejected value sends nothing
        """
        try:
            self._require_token()
            if validate is not None:
                validate()
            return await self._call(method, {"access_token": self.token, **params})
        except (ValidationError, NetworkError, APIError) as e:
            logger.warning("%s failed: %s", method, e)
            return None

    async def create_account(self, short_name: str, author_name: str = "") -> Account:
        """Create a new account and adopt its access token.

        Args:
            short_name: Initial short name (1-32 characters)
            author_name: Initial author name

        Returns:
            Account with the new access token
        """
        self._validate_fields({TIMESTAMP_FIELD: short_name, HOLDER_FIELD: author_name})
        data = await self._call(
            "createAccount",
            {"short_name": short_name, "author_name": author_name},
        )
        self.token = data["access_token"]
        logger.info("Created account %s", short_name)
        return Account(
            access_token=data["access_token"],
            short_name=data.get("short_name", short_name),
            author_name=data.get("author_name", author_name),
            auth_url=data.get("auth_url"),
        )

    async def read_fields(self, names: List[str]) -> Optional[Dict[str, str]]:
        """Read account fields.

        Args:
            names: Account field names to fetch

        Returns:
            Mapping of field name to value, or None on failure
        """
        data = await self._safe_call("getAccountInfo", {"fields": list(names)})
        if not isinstance(data, dict):
            return None
        return {name: data.get(name, "") for name in names}

    async def write_fields(self, values: Dict[str, str]) -> Optional[bool]:
        """Overwrite account fields; fields not given are left unchanged."""
        data = await self._safe_call(
            "editAccountInfo", dict(values), lambda: self._validate_fields(values)
        )
        return True if data is not None else None

    async def create_document(self, title: str, content: str) -> Optional[str]:
        """Create a page holding ``content``.

        Returns:
            The server-assigned page path, or None on failure
        """
        data = await self._safe_call(
            "createPage",
            {"title": title, "content": _to_nodes(content)},
            lambda: self._validate_title(title),
        )
        if not isinstance(data, dict):
            return None
        return data.get("path")

    async def read_document(self, path: str) -> Optional[str]:
        """Fetch the text stored on a page, or None if absent or unreadable."""
        data = await self._safe_call(
            "getPage",
            {"path": path, "return_content": True},
            lambda: self._validate_path(path),
        )
        if not isinstance(data, dict):
            return None
        return _from_nodes(data.get("content"))

    async def overwrite_document(self, path: str, title: str, content: str) -> Optional[bool]:
        """Replace the content of an existing page."""

        def validate():
            self._validate_path(path)
            self._validate_title(title)

        data = await self._safe_call(
            "editPage",
            {"path": path, "title": title, "content": _to_nodes(content)},
            validate,
        )
        return True if data is not None else None

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


def _to_nodes(text: str) -> List[Dict[str, Any]]:
    return [{"tag": "code", "children": [text]}]


def _from_nodes(nodes: Any) -> Optional[str]:
    # [{"tag": "code", "children": ["<text>"]}]
    try:
        text = nodes[0]["children"][0]
    except (IndexError, KeyError, TypeError):
        return None
    return text if isinstance(text, str) else None
