"""HTTP interface of a CDN node: clients fetch and store files, the metadata server invalidates them."""

from __future__ import annotations

import logging
from urllib.parse import unquote

from flask import Flask, Response, request

from cdnsync.cdn_node import CdnNode
from cdnsync.cdn_sender import SenderError

log = logging.getLogger(__name__)


def split_query(query: str) -> tuple[str, str]:
    """Split a ``<hash>&<timestamp>`` query into its file hash and timestamp."""
    file_hash, _, rest = query.partition("&")
    return file_hash, rest.replace("&", "")


def create_cdn_app(node: CdnNode) -> Flask:
    """Build the web application serving ``/cdn/cache/<file>`` for ``node``."""
    app = Flask(__name__)

    def _notify_deleted(names: list[str]) -> None:
        for name in names:
            try:
                node.sender.send_cache_delete(name, node.cdn_id)
            except SenderError as exc:
                log.warning("%s", exc)

    @app.delete("/cdn/cache/<path:file_name>")
    def handle_delete(file_name: str):
        name = "/" + file_name
        if node.delete_file(name):
            _notify_deleted([name])
            return "delete succeeded", 200
        return f"{name} is not found in cdn", 200

    @app.get("/cdn/cache/<path:file_name>")
    def handle_get(file_name: str):
        name = "/" + file_name
        if not node.has_file(name):
            log.info("CDN cache miss for %s", name)
            try:
                node.sender.fetch_from_fss(name, node.cdn_id)
            except SenderError as exc:
                log.warning("fetching %s from FSS failed: %s", name, exc)
                return f"{name} does not exist in fss", 404
        if not node.has_file(name):
            log.warning("%s still doesn't exist", name)
            return f"{name} does not exist in cdn", 404
        return Response(node.load_file(name), 200, mimetype="application/octet-stream")

    @app.put("/cdn/cache/<path:file_name>")
    def handle_put(file_name: str):
        name = "/" + file_name
        file_hash, timestamp = split_query(unquote(request.query_string.decode("utf-8")))
        contents = request.get_data()

        try:
            evicted = node.write_file(contents, name)
        except OSError as exc:
            log.warning("writing %s failed: %s", name, exc)
            return "failed to write the file to cdn", 404
        _notify_deleted(evicted)

        try:
            node.sender.upload_to_fss(name, contents)
        except SenderError as exc:
            log.warning("%s", exc)
            node.delete_file(name)
            return "failed to write the file to fss", 404

        try:
            node.sender.send_file_update(name, file_hash, node.cdn_id, timestamp)
        except SenderError as exc:
            log.warning("%s", exc)
        return f"{name}: {file_hash}, {timestamp}", 200

    return app