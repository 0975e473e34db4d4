"""File storage server: the authoritative store CDNs pull files from and push files to."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import requests
from flask import Flask, Response, request
from werkzeug.serving import make_server

log = logging.getLogger(__name__)

DEFAULT_ROOT = "./FSS_Storage"
DEFAULT_META = "localhost:4000"
DEFAULT_FSS = "localhost:5000"
FSS_LAT = 34.05
FSS_LNG = -118.44
_TIMEOUT = 10


class FileStore:
    """Files kept under a root directory, addressed by slash-separated names."""

    def __init__(self, root: str | os.PathLike[str] = DEFAULT_ROOT) -> None:
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        return self.root / name.lstrip("/")

    def has_file(self, name: str) -> bool:
        """Whether ``name`` is stored."""
        return self._path(name).is_file()

    def read(self, name: str) -> bytes:
        """Return the contents of ``name``."""
        return self._path(name).read_bytes()

    def write(self, name: str, contents: bytes) -> None:
        """Store ``contents`` as ``name``, creating parent directories as needed."""
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(contents)


def create_fss_app(store: FileStore) -> Flask:
    """Build the web application serving ``/get/<file>`` and ``/post/<file>``."""
    app = Flask(__name__)

    @app.get("/get/<path:name>")
    def handle_get(name: str):
        exists = store.has_file(name)
        log.info("GET /%s (exists: %s)", name, exists)
        if not exists:
            return "", 404
        return Response(store.read(name), 200, mimetype="application/octet-stream")

    @app.post("/post/<path:name>")
    def handle_post(name: str):
        log.info("POST /%s", name)
        store.write(name, request.get_data())
        return "", 200

    return app


def register_with_meta(
    meta_address: str,
    fss_address: str,
    lat: float = FSS_LAT,
    lng: float = FSS_LNG,
    session: requests.Session | None = None,
) -> None:
    """Announce this FSS to the metadata server; raises on failure."""
    http = session if session is not None else requests
    payload = {"Type": 1, "IP": fss_address, "Lat": lat, "Lng": lng}
    resp = http.post(f"http://{meta_address}/meta/register/", json=payload, timeout=_TIMEOUT)
    resp.raise_for_status()


def _host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, 80
    return host or "localhost", int(port)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the FSS given ``fss_address meta_address``; does nothing with fewer arguments."""
    logging.basicConfig(level=logging.INFO)
    args = list(sys.argv[1:] if argv is None else argv)
    print("INITIALIZING FSS")
    if len(args) < 2:
        return 0
    fss_address, meta_address = args[0], args[1]
    log.info("FSS IP ADDR: %s, LAT: %f, LNG: %f", fss_address, FSS_LAT, FSS_LNG)

    app = create_fss_app(FileStore())
    try:
        register_with_meta(meta_address, fss_address)
    except requests.RequestException as exc:
        log.warning("registration with metadata server failed: %s", exc)

    host, port = _host_port(fss_address)
    server = make_server(host, port, app, threaded=True)
    print(f"[ FSS ] Listening at address {fss_address}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())