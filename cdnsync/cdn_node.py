"""A CDN node: a size-limited file cache with least-recently-used eviction."""

from __future__ import annotations

import errno
import logging
import os
from pathlib import Path
from typing import Any

import requests

from cdnsync.address import Address, city_location
from cdnsync.cdn_sender import CdnSender, SenderError
from cdnsync.geo import find_location, first_line, ip_to_number, parse_geo_ranges
from cdnsync.lru import LRUCache

log = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = "./cache"
DEFAULT_CAPACITY = 10_000_000
DEFAULT_GEO_CSV = "USA_edit.csv"
IPECHO_URL = "http://ipecho.net/plain"
_TIMEOUT = 10


class CdnNode:
    """Caches files on disk, evicting the least recently used when full."""

    def __init__(
        self,
        cdn_address: str,
        meta_address: str,
        fss_address: str,
        city: str = "la",
        cache_dir: str | os.PathLike[str] = DEFAULT_CACHE_DIR,
        capacity: int = DEFAULT_CAPACITY,
        sender: Any = None,
    ) -> None:
        self.meta_address = meta_address
        self.fss_address = fss_address
        self.capacity = capacity
        self._root = Path(cache_dir)
        self._root.mkdir(parents=True, exist_ok=True)
        self._tracker = LRUCache()
        self.sender = (
            sender
            if sender is not None
            else CdnSender(f"http://{meta_address}", f"http://{fss_address}")
        )
        self.sender.attach(self)

        location = city_location(city)
        if location is not None:
            self.address = Address(location[0], location[1], cdn_address)
        else:
            self.address = Address(ip=cdn_address)
            try:
                self.locate_by_public_ip(DEFAULT_GEO_CSV)
            except (OSError, ValueError, requests.RequestException) as exc:
                log.warning("could not determine CDN location: %s", exc)

        self.cdn_id = -1
        try:
            self.cdn_id = self.sender.register(self.address)
        except SenderError as exc:
            log.warning("%s", exc)
        log.info(
            "registered CDN#%d at %s (%s, %s)",
            self.cdn_id,
            self.address.ip,
            self.address.lat,
            self.address.lng,
        )

    def locate_by_public_ip(self, geo_csv: str | os.PathLike[str] = DEFAULT_GEO_CSV) -> Address:
        """Set this node's address from its public IP and an IP-range location table."""
        resp = requests.get(IPECHO_URL, timeout=_TIMEOUT)
        resp.raise_for_status()
        ip = first_line(resp.text).strip()
        number = ip_to_number(ip)
        with open(geo_csv, newline="", encoding="utf-8") as stream:
            ranges = parse_geo_ranges(stream)
        lat, lng = find_location(ranges, number) or (0.0, 0.0)
        self.address = Address(lat, lng, ip)
        return self.address

    def _path(self, file_name: str) -> Path:
        return self._root / file_name.lstrip("/")

    def has_file(self, file_name: str) -> bool:
        """Whether ``file_name`` is stored in the cache directory."""
        return self._path(file_name).is_file()

    def remove_stored(self, file_name: str) -> bool:
        """Remove ``file_name`` from disk; return whether it was removed."""
        try:
            self._path(file_name).unlink()
        except OSError:
            return False
        return True

    def storage_size(self) -> int:
        """Total size in bytes of the files in the cache directory."""
        return sum(path.stat().st_size for path in self._root.rglob("*") if path.is_file())

    def make_room(self, file_name: str, size: int) -> list[str]:
        """Evict least recently used files until ``size`` more bytes fit, then track the file.

        Returns the evicted names; raises OSError(ENOSPC) if the file cannot fit.
        """
        evicted = []
        while self.storage_size() + size > self.capacity:
            if not self._tracker:
                raise OSError(errno.ENOSPC, f"no room in cache for {file_name}")
            victim = self._tracker.evict()
            self.remove_stored(victim)
            evicted.append(victim)
        self._tracker.set(file_name, size)
        return evicted

    def write_file(self, contents: bytes | str, file_name: str) -> list[str]:
        """Store ``contents`` as ``file_name``; return the names evicted to make room."""
        data = contents.encode("utf-8") if isinstance(contents, str) else bytes(contents)
        evicted = self.make_room(file_name, len(data))
        path = self._path(file_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return evicted

    def load_file(self, file_name: str) -> bytes:
        """Return the cached contents of ``file_name``, marking it recently used."""
        path = self._path(file_name)
        if not path.is_file():
            raise FileNotFoundError(errno.ENOENT, "file not in cache", file_name)
        data = path.read_bytes()
        if file_name in self._tracker:
            self._tracker.touch(file_name)
        else:
            self._tracker.set(file_name, len(data))
        return data

    def delete_file(self, file_name: str) -> bool:
        """Drop ``file_name`` from the cache; return whether a stored file was removed."""
        self._tracker.discard(file_name)
        return self.remove_stored(file_name)