"""HTTP interface through which clients ask the origin what to sync."""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify, request

from cdnsync.address import Address
from cdnsync.meta_server import MetaError
from cdnsync.origin import OriginServer

log = logging.getLogger(__name__)


class _NotJson(Exception):
    pass


class _InvalidJson(Exception):
    pass


def _get(obj: Any, key: str) -> Any:
    if not isinstance(obj, dict) or key not in obj:
        raise _InvalidJson(key)
    return obj[key]


def _string(obj: Any, key: str) -> str:
    value = _get(obj, key)
    if not isinstance(value, str):
        raise _InvalidJson(key)
    return value


def _integer(obj: Any, key: str) -> int:
    value = _get(obj, key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise _InvalidJson(key)
    return value


def _number(obj: Any, key: str) -> float:
    value = _get(obj, key)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise _InvalidJson(key)
    return float(value)


def _array(obj: Any, key: str) -> list:
    value = _get(obj, key)
    if not isinstance(value, list):
        raise _InvalidJson(key)
    return value


def _json_body() -> Any:
    if request.mimetype != "application/json":
        raise _NotJson()
    body = request.get_json(silent=True)
    if body is None:
        raise _InvalidJson("body")
    return body


def _client_address(body: Any) -> Address:
    return Address(_number(body, "Lat"), _number(body, "Lng"), _string(body, "IP"))


def create_origin_app(origin: OriginServer) -> Flask:
    """Build the web application serving ``/origin/explicit`` and ``/origin/sync``."""
    app = Flask(__name__)
    app.register_error_handler(_NotJson, lambda _exc: ("Json object is required", 403))
    app.register_error_handler(_InvalidJson, lambda _exc: ("Invalid json object", 403))

    @app.route("/origin/sync", methods=["POST"], strict_slashes=False)
    def handle_sync():
        body = _json_body()
        client = _client_address(body)
        timestamps: list[tuple[str, str]] = []
        hashes: dict[str, str] = {}
        for entry in _array(body, "FileList"):
            name = _string(entry, "Name")
            timestamps.append((name, _string(entry, "TimeStamp")))
            hashes[name] = _string(entry, "Hash")

        try:
            plan = origin.sync_lists(timestamps)
        except MetaError as exc:
            log.info("sync list failed: %s", exc)
            return "failure to get the list for sync", 404

        uploads = origin.files_to_upload(
            [(name, hashes.get(name, "")) for name in plan.upload], client, True
        )
        downloads = origin.files_to_download(
            [(name, hashes.get(name, "")) for name in plan.download], client, True
        )
        file_list = [{"Name": name, "Address": addr.ip, "Type": "UP"} for name, addr in uploads]
        file_list.extend(
            {
                "Name": name,
                "Address": addr.ip,
                "Type": "DOWN",
                "TimeStamp": plan.timestamps.get(name, ""),
            }
            for name, addr in downloads
        )
        return jsonify({"FileList": file_list}), 200

    @app.route("/origin/explicit", methods=["POST"], strict_slashes=False)
    def handle_explicit():
        body = _json_body()
        client = _client_address(body)
        client_files = [
            (_string(entry, "Name"), _string(entry, "Hash"))
            for entry in _array(body, "FileList")
        ]
        kind = _integer(body, "Type")
        if kind == 0:
            result = origin.files_to_upload(client_files, client)
        elif kind == 1:
            result = origin.files_to_download(client_files, client)
        else:
            return "Undefined Type", 403
        file_list = [{"Name": name, "Address": addr.ip} for name, addr in result]
        return jsonify({"Type": kind, "FileList": file_list}), 200

    return app