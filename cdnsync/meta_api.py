"""HTTP interface through which CDNs and the FSS talk to the metadata server."""

from __future__ import annotations

import logging
from typing import Any

import requests
from flask import Flask, jsonify, request

from cdnsync.address import Address
from cdnsync.meta_server import MetaError, MetaServer

log = logging.getLogger(__name__)

_TIMEOUT = 10


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


def _json_body() -> Any:
    if request.mimetype != "application/json":
        raise _NotJson()
    body = request.get_json(silent=True)
    if body is None:
        raise _InvalidJson("body")
    return body


def _invalidate_others(
    meta: MetaServer, http: requests.Session, file_name: str, source_id: int
) -> None:
    for cdn_id, address in meta.cdn_addresses().items():
        if cdn_id == source_id:
            continue
        url = f"http://{address.ip}/cdn/cache{file_name}"
        try:
            resp = http.delete(url, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            log.warning("failed to send invalidation message to %s: %s", address.ip, exc)
            continue
        if resp.status_code != 200:
            log.warning("failed to send invalidation message to %s", address.ip)


def create_meta_app(meta: MetaServer, session: requests.Session | None = None) -> Flask:
    """Build the web application serving ``/meta/update``, ``/meta/delete`` and ``/meta/register``."""
    http = session if session is not None else requests.Session()
    app = Flask(__name__)
    app.register_error_handler(_NotJson, lambda _exc: ("Json object is required", 403))
    app.register_error_handler(_InvalidJson, lambda _exc: ("Invalid json object", 403))

    @app.route("/meta/update", methods=["POST"], strict_slashes=False)
    def handle_update():
        body = _json_body()
        cdn_id = _integer(body, "CdnId")
        file_name = _string(body, "FileName")
        kind = _integer(body, "Type")
        ok = True
        if kind == 0:
            try:
                meta.add_cdn_to_entry(file_name, cdn_id)
            except MetaError as exc:
                log.info("add CDN failed: %s", exc)
                ok = False
        elif kind == 1:
            file_hash = _string(body, "FileHash")
            timestamp = _string(body, "TimeStamp")
            try:
                meta.update_entry(file_name, file_hash, [cdn_id])
            except MetaError as exc:
                log.warning("failed to update meta entry: %s", exc)
                return "Update failed", 404
            try:
                meta.update_timestamp(file_name, timestamp)
            except MetaError as exc:
                log.info("timestamp update failed: %s", exc)
                ok = False
            _invalidate_others(meta, http, file_name, cdn_id)
        elif kind == 2:
            file_hash = _string(body, "FileHash")
            timestamp = _string(body, "TimeStamp")
            try:
                meta.add_entry(file_name, file_hash, [cdn_id])
                meta.add_timestamp(file_name, timestamp)
            except MetaError as exc:
                log.info("new entry failed: %s", exc)
                ok = False
        else:
            return "Undefined Type", 403
        if ok:
            return "Updated successfully", 200
        return "Update failed", 404

    @app.route("/meta/delete", methods=["DELETE"], strict_slashes=False)
    def handle_delete():
        body = _json_body()
        cdn_id = _integer(body, "CdnId")
        file_name = _string(body, "FileName")
        try:
            meta.delete_cdn_from_entry(file_name, cdn_id)
        except MetaError as exc:
            log.info("delete CDN failed: %s", exc)
            return "Delete failed", 200
        return "Deleted successfully", 200

    @app.route("/meta/register", methods=["POST"], strict_slashes=False)
    def handle_register():
        body = _json_body()
        kind = _integer(body, "Type")
        if kind not in (0, 1):
            return "Invalid type", 403
        address = Address(_number(body, "Lat"), _number(body, "Lng"), _string(body, "IP"))
        if kind == 0:
            return jsonify({"CdnId": meta.register_cdn(address)}), 200
        meta.set_fss_address(address)
        return "FSS registration complete", 200

    return app