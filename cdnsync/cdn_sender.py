"""Outgoing messages from a CDN node to the metadata server and the FSS."""

from __future__ import annotations

import logging
from typing import Any

import requests

from cdnsync.address import Address

log = logging.getLogger(__name__)

_TIMEOUT = 10


class SenderError(Exception):
    """A message to the metadata server or the FSS failed."""


class CdnSender:
    """Sends cache and file notifications to the metadata server and moves files to and from the FSS."""

    def __init__(
        self,
        meta_url: str,
        fss_url: str,
        session: requests.Session | None = None,
    ) -> None:
        self.meta_url = meta_url.rstrip("/")
        self.fss_url = fss_url.rstrip("/")
        self._http = session if session is not None else requests.Session()
        self._node: Any = None

    def attach(self, node: Any) -> None:
        """Attach the CDN node whose cache receives files fetched from the FSS."""
        self._node = node

    def _request(self, method: str, url: str, what: str, **kwargs: Any) -> requests.Response:
        try:
            resp = self._http.request(method, url, timeout=_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            raise SenderError(f"{what}: {exc}") from exc
        if resp.status_code != 200:
            raise SenderError(f"{what}: status {resp.status_code}")
        return resp

    # ------------------------------------------------------------ metadata

    def send_cache_update(self, file_name: str, cdn_id: int) -> None:
        """Tell the metadata server this CDN now caches ``file_name`` pulled from the FSS."""
        payload = {"Type": 0, "FileName": file_name, "CdnId": cdn_id}
        self._request("POST", f"{self.meta_url}/meta/update/", "cache update", json=payload)

    def send_file_update(self, file_name: str, file_hash: str, cdn_id: int, timestamp: str) -> None:
        """Tell the metadata server this CDN holds a new version of an existing file."""
        payload = {
            "Type": 1,
            "FileName": file_name,
            "FileHash": file_hash,
            "CdnId": cdn_id,
            "TimeStamp": timestamp,
        }
        self._request("POST", f"{self.meta_url}/meta/update/", "file update", json=payload)

    def send_new_file(self, file_name: str, file_hash: str, cdn_id: int, timestamp: str) -> None:
        """Tell the metadata server this CDN received a file it has never seen."""
        payload = {
            "Type": 2,
            "FileName": file_name,
            "FileHash": file_hash,
            "CdnId": cdn_id,
            "TimeStamp": timestamp,
        }
        self._request("POST", f"{self.meta_url}/meta/update/", "new file", json=payload)

    def send_cache_delete(self, file_name: str, cdn_id: int) -> None:
        """Tell the metadata server this CDN dropped ``file_name`` from its cache."""
        payload = {"FileName": file_name, "CdnId": cdn_id}
        self._request("DELETE", f"{self.meta_url}/meta/delete/", "cache delete", json=payload)

    def register(self, address: Address) -> int:
        """Register this CDN with the metadata server and return the assigned id."""
        payload = {"Type": 0, "IP": address.ip, "Lat": address.lat, "Lng": address.lng}
        resp = self._request("POST", f"{self.meta_url}/meta/register/", "registration", json=payload)
        try:
            cdn_id = resp.json()["CdnId"]
        except (ValueError, KeyError, TypeError) as exc:
            raise SenderError(f"registration: invalid response from metadata server: {exc}") from exc
        if not isinstance(cdn_id, int) or isinstance(cdn_id, bool):
            raise SenderError("registration: invalid response from metadata server")
        return cdn_id

    # ----------------------------------------------------------------- FSS

    def fetch_from_fss(self, file_name: str, cdn_id: int) -> list[str]:
        """Download ``file_name`` from the FSS into the attached node's cache.

        Returns the names evicted from the cache to make room.
        """
        if self._node is None:
            raise RuntimeError("no CDN node attached to the sender")
        resp = self._request("GET", f"{self.fss_url}/get{file_name}", "download from FSS")
        try:
            evicted = self._node.write_file(resp.content, file_name)
        except OSError as exc:
            raise SenderError(f"could not store {file_name} in cache: {exc}") from exc
        for name in evicted:
            try:
                self.send_cache_delete(name, cdn_id)
            except SenderError as exc:
                log.warning("%s", exc)
        try:
            self.send_cache_update(file_name, cdn_id)
        except SenderError as exc:
            log.warning("%s", exc)
        return evicted

    def upload_to_fss(self, file_name: str, contents: bytes) -> None:
        """Store ``contents`` as ``file_name`` on the FSS."""
        self._request("POST", f"{self.fss_url}/post{file_name}", "upload to FSS", data=contents)