"""Origin server: answers clients' questions about what to sync and where."""

from __future__ import annotations

from typing import Sequence

from cdnsync.address import Address
from cdnsync.meta_server import MetaServer, SyncPlan


class OriginServer:
    """Front end for clients, backed by a metadata server."""

    def __init__(self, address: str, meta: MetaServer | None = None) -> None:
        self.address = address
        self.meta = meta

    def _require_meta(self) -> MetaServer:
        if self.meta is None:
            raise RuntimeError("origin server has no metadata server attached")
        return self.meta

    def files_to_download(
        self,
        client_files: Sequence[tuple[str, str]],
        client: Address,
        shared_only: bool = False,
    ) -> list[tuple[str, Address]]:
        """Files the client must download, from (name, hash) pairs of its local files."""
        return self._require_meta().process_download(client_files, client, shared_only)

    def files_to_upload(
        self,
        client_files: Sequence[tuple[str, str]],
        client: Address,
        shared_only: bool = False,
    ) -> list[tuple[str, Address]]:
        """Files the client must upload, from (name, hash) pairs of its local files."""
        return self._require_meta().process_upload(client_files, client, shared_only)

    def sync_lists(self, client_files: Sequence[tuple[str, str]]) -> SyncPlan:
        """Upload and download lists, from (name, timestamp) pairs of local files."""
        return self._require_meta().sync_with_timestamps(client_files)