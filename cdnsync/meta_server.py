"""Metadata server: which CDNs hold which files, plus file timestamps.

Metadata lives in versioned text files. Every rewrite goes into the next of
ten version slots, so a reader of the previous version is never disturbed.
A metadata line reads ``<name> <hash> [<cdn id> ...]``; a timestamp line
reads ``<name> <timestamp>``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence

from cdnsync.address import Address, distance_miles

log = logging.getLogger(__name__)

_VERSION_SLOTS = 10


class MetaError(Exception):
    """A metadata operation could not be carried out."""


@dataclass
class SyncPlan:
    """Files a client must upload or download, and the stored timestamps of downloads."""

    upload: list[str] = field(default_factory=list)
    download: list[str] = field(default_factory=list)
    timestamps: dict[str, str] = field(default_factory=dict)


def parse_line(line: str) -> tuple[str, str, list[int]]:
    """Split a metadata line into file name, file hash and CDN ids."""
    words = line.split(" ")
    name = words[0]
    file_hash = words[1] if len(words) > 1 else ""
    cdn_ids = [int(word) for word in words[2:]]
    return name, file_hash, cdn_ids


def construct_line(file_name: str, file_hash: str, cdn_ids: Iterable[int]) -> str:
    """Build a metadata line from its parts."""
    return f"{file_name} {file_hash}" + "".join(f" {cdn_id}" for cdn_id in cdn_ids)


def parse_timestamp_line(line: str) -> tuple[str, str]:
    """Split a timestamp line into file name and timestamp."""
    name, _, timestamp = line.partition(" ")
    return name, timestamp


def _matches(line: str, file_name: str) -> bool:
    return line.startswith(file_name + " ")


def _read_lines(path: Path) -> list[str] | None:
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8")
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _write_lines(path: Path, lines: Iterable[str]) -> None:
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8", newline="")


def _append_line(path: Path, line: str) -> None:
    with path.open("a", encoding="utf-8", newline="") as handle:
        handle.write(line + "\n")


class MetaServer:
    """Keeps the CDN registry and the file metadata the origin and CDNs rely on."""

    def __init__(
        self,
        address: str,
        file_name: str = "metaFile",
        data_dir: str | os.PathLike[str] = "./MetaData",
        origin: Any = None,
    ) -> None:
        if " " in file_name:
            raise ValueError("metadata file name can't contain a space")
        self.address = address
        self.origin = origin
        self._dir = Path(data_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._file_name = file_name
        self._version = 0
        self._ts_version = 0
        self._next_cdn_id = 0
        self._fss = Address()
        self._cdns: dict[int, Address] = {}
        self._overloaded: set[int] = set()

    # ------------------------------------------------------------------ paths

    def _meta_path(self, version: int | None = None) -> Path:
        number = self._version if version is None else version
        return self._dir / f"{self._file_name}_v{number}"

    def _ts_path(self, version: int | None = None) -> Path:
        number = self._ts_version if version is None else version
        return self._dir / f"{self._file_name}_timestamp_v{number}"

    def _rewrite_meta(self, lines: list[str]) -> None:
        self._version = (self._version + 1) % _VERSION_SLOTS
        _write_lines(self._meta_path(), lines)

    def _rewrite_ts(self, lines: list[str]) -> None:
        self._ts_version = (self._ts_version + 1) % _VERSION_SLOTS
        _write_lines(self._ts_path(), lines)

    def _current_meta_lines(self) -> list[str]:
        lines = _read_lines(self._meta_path())
        if lines is None:
            raise MetaError(f"metadata file {self._meta_path()} does not exist")
        return lines

    # --------------------------------------------------------------- registry

    def set_fss_address(self, fss: Address) -> None:
        """Record where the file storage server lives."""
        self._fss = fss

    def register_cdn(self, cdn: Address) -> int:
        """Register a CDN and return the id assigned to it."""
        cdn_id = self._next_cdn_id
        self._cdns[cdn_id] = cdn
        self._next_cdn_id += 1
        return cdn_id

    def unregister_cdn(self, cdn_id: int) -> None:
        """Forget a registered CDN."""
        if cdn_id not in self._cdns:
            raise MetaError(f"CDN#{cdn_id} is not registered")
        del self._cdns[cdn_id]
        self._overloaded.discard(cdn_id)

    def cdn_addresses(self) -> dict[int, Address]:
        """Return a copy of the registered CDNs, keyed by id."""
        return dict(self._cdns)

    # ---------------------------------------------------------------- routing

    def cdn_load_ok(self, cdn_id: int) -> bool:
        """Whether a CDN can take more load; none is marked overloaded by default."""
        return cdn_id not in self._overloaded

    def closest_cdn(self, cdn_ids: Iterable[int], client: Address) -> int | None:
        """Return the id of the registered CDN nearest to ``client``, or None."""
        best_id: int | None = None
        best_distance = 0.0
        for cdn_id in cdn_ids:
            if not self.cdn_load_ok(cdn_id) or cdn_id not in self._cdns:
                continue
            distance = distance_miles(self._cdns[cdn_id], client)
            if best_id is None or distance < best_distance:
                best_id = cdn_id
                best_distance = distance
        return best_id

    def cdns_containing(self, file_name: str) -> list[int]:
        """Return the ids of CDNs that hold ``file_name``."""
        for line in self._current_meta_lines():
            if _matches(line, file_name):
                return parse_line(line)[2]
        return []

    def is_cdn_closer_than_fss(self, cdn_id: int, client: Address) -> bool:
        """Whether a registered CDN is at most as far from ``client`` as the FSS."""
        if cdn_id not in self._cdns:
            return False
        return distance_miles(self._cdns[cdn_id], client) <= distance_miles(self._fss, client)

    def _address_of(self, cdn_id: int | None) -> Address:
        if cdn_id is None:
            return Address()
        return self._cdns.get(cdn_id, Address())

    def process_download(
        self,
        client_files: Sequence[tuple[str, str]],
        client: Address,
        shared_only: bool = False,
    ) -> list[tuple[str, Address]]:
        """List the files the client must download, each with the CDN to fetch it from.

        ``client_files`` holds (name, hash) pairs of the client's local files.
        """
        client_hashes = dict(client_files)
        result = []
        for line in _read_lines(self._meta_path()) or []:
            name, file_hash, holders = parse_line(line)
            if shared_only and name not in client_hashes:
                continue
            if client_hashes.get(name) == file_hash:
                continue
            candidate = self.closest_cdn(holders, client)
            if candidate is not None and self.is_cdn_closer_than_fss(candidate, client):
                result.append((name, self._cdns[candidate]))
            else:
                result.append((name, self._address_of(self.closest_cdn(self._cdns, client))))
        return result

    def process_upload(
        self,
        client_files: Sequence[tuple[str, str]],
        client: Address,
        shared_only: bool = False,
    ) -> list[tuple[str, Address]]:
        """List the files the client must upload, each with the CDN to send it to.

        ``client_files`` holds (name, hash) pairs of the client's local files.
        """
        client_hashes = dict(client_files)
        target = self._address_of(self.closest_cdn(self._cdns, client))
        result = []
        for line in _read_lines(self._meta_path()) or []:
            name, file_hash, _ = parse_line(line)
            if name not in client_hashes:
                continue
            if client_hashes.pop(name) == file_hash:
                continue
            result.append((name, target))
        if not shared_only:
            result.extend((name, target) for name in client_hashes)
        return result

    # --------------------------------------------------------- metadata lines

    def exists(self, file_name: str) -> bool:
        """Whether metadata for ``file_name`` is stored."""
        lines = _read_lines(self._meta_path())
        return lines is not None and any(_matches(line, file_name) for line in lines)

    def delete_entry(self, file_name: str) -> bool:
        """Drop the metadata for ``file_name``; return whether it was present."""
        lines = self._current_meta_lines()
        kept = [line for line in lines if not _matches(line, file_name)]
        self._rewrite_meta(kept)
        found = len(kept) != len(lines)
        if not found:
            log.info("%s is not found for delete operation", file_name)
        return found

    def add_entry(self, file_name: str, file_hash: str, cdn_ids: Iterable[int]) -> None:
        """Store metadata for a file that has none yet."""
        if self.exists(file_name):
            raise MetaError(f"{file_name} already exists")
        _append_line(self._meta_path(), construct_line(file_name, file_hash, cdn_ids))

    def update_entry(self, file_name: str, file_hash: str, cdn_ids: Iterable[int]) -> None:
        """Replace the metadata for ``file_name``, adding it if absent."""
        if self.exists(file_name):
            self.delete_entry(file_name)
        self.add_entry(file_name, file_hash, cdn_ids)

    def add_cdn_to_entry(self, file_name: str, cdn_id: int) -> None:
        """Record that a CDN now holds ``file_name``."""
        found = False
        lines = []
        for line in self._current_meta_lines():
            if _matches(line, file_name):
                found = True
                if cdn_id in parse_line(line)[2]:
                    log.info("CDN#%d already exists in the list", cdn_id)
                else:
                    line = f"{line} {cdn_id}"
            lines.append(line)
        self._rewrite_meta(lines)
        if not found:
            raise MetaError(f"{file_name} is not found for add CDN operation")

    def delete_cdn_from_entry(self, file_name: str, cdn_id: int) -> None:
        """Record that a CDN no longer holds ``file_name``."""
        file_found = False
        cdn_found = False
        lines = []
        for line in self._current_meta_lines():
            if _matches(line, file_name):
                file_found = True
                name, file_hash, holders = parse_line(line)
                if cdn_id in holders:
                    holders.remove(cdn_id)
                    cdn_found = True
                line = construct_line(name, file_hash, holders)
            lines.append(line)
        self._rewrite_meta(lines)
        if not file_found:
            raise MetaError(f"{file_name} is not found for delete CDN operation")
        if not cdn_found:
            raise MetaError(f"CDN#{cdn_id} does not contain {file_name}")

    # ------------------------------------------------------------- timestamps

    def sync_with_timestamps(self, client_files: Sequence[tuple[str, str]]) -> SyncPlan:
        """Decide, by timestamp, which files to upload and which to download.

        ``client_files`` holds (name, timestamp) pairs of the client's local files.
        """
        lines = _read_lines(self._ts_path())
        if lines is None:
            raise MetaError(f"timestamp file {self._ts_path()} does not exist")
        client_times = dict(client_files)
        plan = SyncPlan()
        for line in lines:
            name, stored = parse_timestamp_line(line)
            if name in client_times and int(client_times[name]) > int(stored):
                plan.upload.append(name)
            else:
                plan.timestamps[name] = stored
                plan.download.append(name)
        return plan

    def add_timestamp(self, file_name: str, timestamp: str) -> None:
        """Append a timestamp record for ``file_name``."""
        _append_line(self._ts_path(), f"{file_name} {timestamp}")

    def update_timestamp(self, file_name: str, timestamp: str) -> None:
        """Replace the timestamp record for ``file_name``, adding it if absent."""
        if self._ts_path().exists():
            try:
                self.delete_timestamp(file_name)
            except MetaError:
                pass
        self.add_timestamp(file_name, timestamp)

    def delete_timestamp(self, file_name: str) -> None:
        """Drop the timestamp record for ``file_name``."""
        lines = _read_lines(self._ts_path())
        if lines is None:
            raise MetaError(f"timestamp file {self._ts_path()} does not exist")
        kept = [line for line in lines if not _matches(line, file_name)]
        self._rewrite_ts(kept)
        if len(kept) == len(lines):
            raise MetaError(f"{file_name} is not found")