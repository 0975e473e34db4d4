"""Locating hosts: IP-range tables, public IP discovery and geolocation lookup."""

from __future__ import annotations

import csv
import json
import subprocess
from dataclasses import dataclass
from typing import Iterable, TextIO

import requests

GEO_ENDPOINT = "http://www.geoplugin.net/json.gp"
PUBLIC_IP_COMMAND = ["dig", "+short", "myip.opendns.com", "@resolver1.opendns.com"]


@dataclass(frozen=True)
class GeoRange:
    """An inclusive range of numeric IPv4 addresses and its location."""

    start: int
    end: int
    latitude: float
    longitude: float


def parse_geo_ranges(stream: TextIO) -> list[GeoRange]:
    """Parse ``start,end,latitude,longitude`` rows following a header line."""
    reader = csv.reader(stream)
    next(reader, None)
    ranges = []
    for row in reader:
        fields = [field.strip() for field in row]
        if not any(fields):
            continue
        if len(fields) != 4:
            raise ValueError(f"line {reader.line_num}: expected 4 fields, got {len(fields)}")
        try:
            ranges.append(
                GeoRange(int(fields[0]), int(fields[1]), float(fields[2]), float(fields[3]))
            )
        except ValueError as exc:
            raise ValueError(f"line {reader.line_num}: {exc}") from exc
    return ranges


def ip_to_number(ip: str) -> int:
    """Convert a dotted IPv4 address to its 32-bit numeric form."""
    parts = ip.strip().split(".")
    if len(parts) != 4 or not all(part.isdigit() for part in parts):
        raise ValueError(f"not an IPv4 address: {ip!r}")
    number = 0
    for part in parts:
        number = number * 256 + int(part)
    return number


def find_location(ranges: Iterable[GeoRange], number: int) -> tuple[float, float] | None:
    """Return (lat, lng) of the first range holding ``number``, or None."""
    for entry in ranges:
        if entry.start <= number <= entry.end:
            return (entry.latitude, entry.longitude)
    return None


def first_line(text: str) -> str:
    """Return ``text`` up to its first newline."""
    return text.split("\n", 1)[0]


def public_ip() -> str:
    """Ask a public resolver for this host's external IP address."""
    result = subprocess.run(PUBLIC_IP_COMMAND, capture_output=True, text=True, check=True)
    return first_line(result.stdout)


def lookup_lat_lng(ip_addr: str, session: requests.Session | None = None) -> tuple[float, float]:
    """Look up the latitude and longitude of ``ip_addr`` with a geolocation service."""
    http = session if session is not None else requests
    response = http.get(GEO_ENDPOINT, params={"ip": ip_addr}, timeout=10)
    if response.status_code != 200:
        raise LookupError(f"geolocation lookup failed with status {response.status_code}")
    try:
        body = json.loads(response.text)
    except ValueError as exc:
        raise LookupError(f"invalid geolocation response: {exc}") from exc
    if not isinstance(body, dict):
        raise LookupError("geolocation response is empty")
    try:
        return (float(body["geoplugin_latitude"]), float(body["geoplugin_longitude"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise LookupError(f"geolocation response lacks coordinates: {exc}") from exc