"""Command that runs a CDN node until ENTER is pressed."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from typing import Sequence

from werkzeug.serving import make_server

from cdnsync.cdn_api import create_cdn_app
from cdnsync.cdn_node import CdnNode

DEFAULT_CDN = "localhost:2000"
DEFAULT_META = "localhost:4000"
DEFAULT_FSS = "localhost:5000"
DEFAULT_LOCATION = "la"


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Read ``[cdn meta fss [location]]``; addresses apply only when all three are given."""
    args = list(argv)
    options = argparse.Namespace(
        cdn=DEFAULT_CDN, meta=DEFAULT_META, fss=DEFAULT_FSS, location=DEFAULT_LOCATION
    )
    if len(args) >= 3:
        options.cdn, options.meta, options.fss = args[0], args[1], args[2]
    if len(args) >= 4:
        options.location = args[3]
    return options


def _host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, 80
    return host or "localhost", int(port)


def main(argv: Sequence[str] | None = None) -> int:
    """Start a CDN node, serve requests, and stop when a line is read from stdin."""
    logging.basicConfig(level=logging.INFO)
    options = parse_args(sys.argv[1:] if argv is None else argv)
    node = CdnNode(options.cdn, options.meta, options.fss, options.location)
    host, port = _host_port(options.cdn)
    server = make_server(host, port, create_cdn_app(node), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    print(f"CDN is listening for requests at: http://{options.cdn}/cdn/cache")
    print("Press ENTER to stop CDN.")
    sys.stdin.readline()
    server.shutdown()
    thread.join()
    server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())