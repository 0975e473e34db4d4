"""Sync client: keeps a local directory in step with the files held by the CDN."""

from __future__ import annotations

import enum
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Sequence

import requests

from cdnsync import crypto
from cdnsync.address import Address, city_location
from cdnsync.filehash import hash_file
from cdnsync.geo import lookup_lat_lng, public_ip

log = logging.getLogger(__name__)

DEFAULT_ORIGIN = "localhost:3000"
DEFAULT_LOCATION = "la"
DEFAULT_BASE_DIR = "./"
SYNC_INTERVAL = 10
USAGE = "Usage: client [--download,--upload,--sync] [dir] [origin address] [location]"
_TIMEOUT = 10


@dataclass
class FileInfo:
    """A file's relative name, content hash, modification time and serving CDN."""

    name: str
    hash: str = ""
    timestamp: str = ""
    cdn_addr: str = "0.0.0.0"

    def __str__(self) -> str:
        return f"{self.name} {self.hash} {self.timestamp} {self.cdn_addr}"


class Direction(enum.IntEnum):
    """Which way an explicit sync moves files."""

    UPLOAD = 0
    DOWNLOAD = 1


def _file_entries(body: Any) -> Iterator[tuple[dict, str, str]]:
    """Yield (entry, name without leading slash, CDN address) from an origin response."""
    if not isinstance(body, dict) or not isinstance(body.get("FileList"), list):
        raise ValueError("response lacks a FileList array")
    for entry in body["FileList"]:
        if not isinstance(entry, dict):
            raise ValueError("file entry is not an object")
        name = entry.get("Name")
        address = entry.get("Address")
        if not isinstance(name, str) or not isinstance(address, str):
            raise ValueError("file entry lacks Name or Address")
        yield entry, name[1:], address


def _contains(name: str, files: Sequence[FileInfo]) -> bool:
    return any(info.name == name for info in files)


class Client:
    """Syncs a local directory with the CDN, asking the origin what to move and where."""

    def __init__(
        self,
        origin_url: str,
        location: str = DEFAULT_LOCATION,
        base_dir: str | os.PathLike[str] = DEFAULT_BASE_DIR,
        session: requests.Session | None = None,
        ip_address: str | None = None,
    ) -> None:
        self.origin_url = origin_url.rstrip("/")
        self.base_dir = Path(base_dir)
        self._http = session if session is not None else requests.Session()
        ip = ip_address if ip_address is not None else public_ip()
        coords = city_location(location)
        if coords is None:
            coords = lookup_lat_lng(ip, self._http)
        self.address = Address(coords[0], coords[1], ip)
        self.deleted_files: list[FileInfo] = []
        self.needs_sync_upload = False
        self._post_sync: list[FileInfo] = []
        self._timestamps: dict[str, str] = {}

    # ------------------------------------------------------------ explicit

    def sync_download(self) -> list[FileInfo]:
        """Download every file the origin says differs; return those files."""
        return self._sync_explicit(Direction.DOWNLOAD)

    def sync_upload(self) -> list[FileInfo]:
        """Upload every local file the origin says differs; return those files."""
        return self._sync_explicit(Direction.UPLOAD)

    def _sync_explicit(self, direction: Direction) -> list[FileInfo]:
        files = self.list_local_files()
        for info in files:
            log.info("local: %s", info)
        diff = self.compare_explicit(files, direction)
        for info in diff:
            log.info("differs: %s", info)
            if direction is Direction.DOWNLOAD:
                self.download_file(info)
            else:
                self.upload_file(info)
        return diff

    # ---------------------------------------------------------------- auto

    def auto_sync(self, first_run: bool) -> tuple[list[FileInfo], list[FileInfo]]:
        """Run one round of automatic syncing; return the (upload, download) lists used."""
        if first_run:
            self.sync_download()

        files = self.list_local_files()
        for info in files:
            log.info("local: %s", info)

        if not first_run:
            self.compare_local_lists(self._post_sync, files)

        uploads, downloads = self.compare_sync(files)
        if not uploads and not downloads:
            log.info("no download/upload file to process")

        for info in downloads:
            self.download_file(info)
        for info in uploads:
            self.upload_file(info)

        self._post_sync = self.list_local_files()

        if self.needs_sync_upload:
            self.sync_upload()
        return uploads, downloads

    # ------------------------------------------------------------- listing

    def list_local_files(self, subpath: str = "") -> list[FileInfo]:
        """Recursively list the non-hidden files under the base directory.

        ``subpath`` is a directory relative to the base, ending with ``/``.
        """
        directory = self.base_dir / subpath
        try:
            with os.scandir(directory) as scan:
                entries = sorted(scan, key=lambda entry: entry.name)
        except OSError as exc:
            log.warning("could not open directory %s: %s", directory, exc)
            return []

        files: list[FileInfo] = []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            relative = f"{subpath}{entry.name}"
            if entry.is_dir():
                files.extend(self.list_local_files(relative + "/"))
                continue
            timestamp = str(int(entry.stat().st_mtime))
            files.append(FileInfo(relative, hash_file(entry.path), timestamp))
            self._timestamps[relative] = timestamp
        return files

    # ------------------------------------------------------------ requests

    def _client_fields(self) -> dict[str, Any]:
        return {"IP": self.address.ip, "Lat": self.address.lat, "Lng": self.address.lng}

    def _post_origin(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            resp = self._http.post(f"{self.origin_url}{path}", json=payload, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            log.error("request to origin failed: %s", exc)
            return None
        if resp.status_code != 200:
            log.error("response from origin failed with status %d", resp.status_code)
            return None
        try:
            return resp.json()
        except ValueError as exc:
            log.error("invalid JSON from origin: %s", exc)
            return None

    def compare_explicit(self, files: Sequence[FileInfo], direction: Direction) -> list[FileInfo]:
        """Ask the origin which files differ for an explicit upload or download."""
        payload = {
            "Type": int(direction),
            "FileList": [{"Name": "/" + info.name, "Hash": info.hash} for info in files],
            **self._client_fields(),
        }
        body = self._post_origin("/origin/explicit/", payload)
        diff: list[FileInfo] = []
        if body is None:
            return diff
        try:
            for _entry, name, address in _file_entries(body):
                info = FileInfo(name, cdn_addr=address)
                if direction is Direction.UPLOAD:
                    info.timestamp = self._timestamps.get(name, "")
                diff.append(info)
        except ValueError as exc:
            log.error("JSON object error: %s", exc)
        return diff

    def compare_sync(self, files: Sequence[FileInfo]) -> tuple[list[FileInfo], list[FileInfo]]:
        """Ask the origin, by timestamp, which files to upload and which to download."""
        payload = {
            "FileList": [
                {"Name": "/" + info.name, "Hash": info.hash, "TimeStamp": info.timestamp}
                for info in files
            ],
            **self._client_fields(),
        }
        body = self._post_origin("/origin/sync/", payload)
        uploads: list[FileInfo] = []
        downloads: list[FileInfo] = []
        if body is None:
            return uploads, downloads
        try:
            for entry, name, address in _file_entries(body):
                kind = entry.get("Type")
                if kind == "UP":
                    uploads.append(FileInfo(name, "", self._timestamps.get(name, ""), address))
                elif kind == "DOWN":
                    downloads.append(FileInfo(name, cdn_addr=address))
                else:
                    log.error("wrong file type %r for %s", kind, name)
        except ValueError as exc:
            log.error("JSON object error: %s", exc)
        return uploads, downloads

    def compare_local_lists(
        self, previous: Sequence[FileInfo], current: Sequence[FileInfo]
    ) -> tuple[list[FileInfo], list[FileInfo]]:
        """Detect files deleted and created locally since the last sync.

        Deleted files are remembered so they are never transferred again; new
        files (other than previously deleted ones) mark an upload as needed.
        Returns the (deleted, new) files found in this comparison.
        """
        deleted = [info for info in previous if not _contains(info.name, current)]
        for info in deleted:
            log.info("DELETED: %s", info.name)
        self.deleted_files.extend(deleted)

        new = [
            info
            for info in current
            if not _contains(info.name, previous) and not _contains(info.name, self.deleted_files)
        ]
        for info in new:
            log.info("NEW: %s", info.name)
        self.needs_sync_upload = bool(new)
        return deleted, new

    # ----------------------------------------------------------- transfers

    def _cdn_url(self, info: FileInfo) -> str:
        return f"http://{info.cdn_addr}/cdn/cache/{info.name}"

    def download_file(self, info: FileInfo) -> bool:
        """Fetch ``info`` from its CDN into the base directory; return whether it was saved."""
        log.info("downloading %s", info)
        if _contains(info.name, self.deleted_files):
            log.info("%s has already been deleted, skip", info.name)
            return False
        try:
            resp = self._http.get(self._cdn_url(info), timeout=_TIMEOUT)
        except requests.RequestException as exc:
            log.error("error when downloading %s: %s", info.name, exc)
            return False
        if resp.status_code != 200:
            log.error("failed to download %s: status %d", info.name, resp.status_code)
            return False
        contents = resp.content
        if crypto.USE_CRYPTO:
            contents = crypto.decrypt_contents(contents)
        path = self.base_dir / info.name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(contents)
        return True

    def upload_file(self, info: FileInfo) -> bool:
        """Send the local copy of ``info`` to its CDN; return whether it was accepted."""
        log.info("uploading %s", info)
        if _contains(info.name, self.deleted_files):
            log.info("%s has already been deleted, skip", info.name)
            return False
        path = self.base_dir / info.name
        try:
            contents = path.read_bytes()
            if not info.hash:
                info.hash = hash_file(path)
        except OSError as exc:
            log.error("could not read %s: %s", path, exc)
            return False
        if crypto.USE_CRYPTO:
            contents = crypto.encrypt_contents(contents)
        url = f"{self._cdn_url(info)}?{info.hash}&{info.timestamp}"
        try:
            resp = self._http.put(url, data=contents, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            log.error("error when uploading %s: %s", info.name, exc)
            return False
        if resp.status_code != 200:
            log.error("failed to upload %s: status %d", info.name, resp.status_code)
            return False
        return True


def main(argv: Sequence[str] | None = None) -> int:
    """Run ``[--download|--upload|--sync] [dir] [origin address] [location]``."""
    logging.basicConfig(level=logging.INFO)
    args = list(sys.argv[1:] if argv is None else argv)
    print("INITIALIZING CLIENT")
    if not args:
        print(USAGE)
        return 0

    mode = args[0]
    base_dir = args[1] if len(args) > 1 else DEFAULT_BASE_DIR
    origin = args[2] if len(args) > 2 else DEFAULT_ORIGIN
    location = args[3] if len(args) > 3 else DEFAULT_LOCATION

    print(f"origin ip: http://{origin}")
    client = Client(f"http://{origin}", location, base_dir)
    print(f"Base Dir: {client.base_dir}")

    if mode == "--download":
        print("Download")
        client.sync_download()
    elif mode == "--upload":
        print("Upload")
        client.sync_upload()
    elif mode == "--sync":
        first_run = True
        while True:
            print("\n  Autosyncing.....", end="")
            for remaining in range(SYNC_INTERVAL, 0, -1):
                print(remaining, end=" ", flush=True)
                time.sleep(1)
            print("\n")
            client.auto_sync(first_run)
            first_run = False
    return 0


if __name__ == "__main__":
    sys.exit(main())