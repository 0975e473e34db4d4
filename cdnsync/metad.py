"""Command that runs the origin and metadata servers until ENTER is pressed."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from typing import Sequence

from werkzeug.serving import make_server

from cdnsync.meta_api import create_meta_app
from cdnsync.meta_server import MetaServer
from cdnsync.origin import OriginServer
from cdnsync.origin_api import create_origin_app

DEFAULT_META = "localhost:4000"
DEFAULT_ORIGIN = "localhost:3000"
DEFAULT_DATA_DIR = "./MetaData"
META_FILE = "metaFile"


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Read ``[meta_address origin_address]``; both apply only when both are given."""
    args = list(argv)
    options = argparse.Namespace(meta=DEFAULT_META, origin=DEFAULT_ORIGIN)
    if len(args) >= 2:
        options.meta, options.origin = args[0], args[1]
    return options


def build_servers(
    meta_address: str,
    origin_address: str,
    data_dir: str | os.PathLike[str] = DEFAULT_DATA_DIR,
) -> tuple[OriginServer, MetaServer]:
    """Create an origin server and a metadata server linked to each other."""
    origin = OriginServer(origin_address)
    meta = MetaServer(meta_address, META_FILE, data_dir, origin)
    origin.meta = meta
    return origin, meta


def _host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, 80
    return host or "localhost", int(port)


def main(argv: Sequence[str] | None = None) -> int:
    """Serve the origin and metadata servers, stopping when a line is read from stdin."""
    logging.basicConfig(level=logging.INFO)
    options = parse_args(sys.argv[1:] if argv is None else argv)
    origin, meta = build_servers(options.meta, options.origin)
    servers = [
        make_server(*_host_port(options.origin), create_origin_app(origin), threaded=True),
        make_server(*_host_port(options.meta), create_meta_app(meta), threaded=True),
    ]
    threads = [threading.Thread(target=server.serve_forever, daemon=True) for server in servers]
    for thread in threads:
        thread.start()
    print(f"Origin is listening for client requests at: http://{options.origin}/origin")
    print(f"Meta is listening for CDN requests at: http://{options.meta}/meta")
    print("Press ENTER to stop Origin and Meta.")
    sys.stdin.readline()
    for server in servers:
        server.shutdown()
    for thread in threads:
        thread.join()
    for server in servers:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())