"""Interface the lock and the store need from the remote service."""

from typing import Dict, List, Optional

from typing_extensions import Protocol


class RemoteStore(Protocol):
    """Scalar account fields plus opaque text documents.

    Every method returns ``None`` on any failure (network error, remote
    rejection, timeout) instead of raising.
    """

    async def read_fields(self, names: List[str]) -> Optional[Dict[str, str]]:
        ...

    async def write_fields(self, values: Dict[str, str]) -> Optional[bool]:
        ...

    async def create_document(self, title: str, content: str) -> Optional[str]:
        ...

    async def read_document(self, path: str) -> Optional[str]:
        ...

    async def overwrite_document(self, path: str, title: str, content: str) -> Optional[bool]:
        ...
