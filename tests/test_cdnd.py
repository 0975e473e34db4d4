import io
import json
import sys

import responses

from cdnsync.cdnd import main, parse_args


def test_parse_args_defaults():
    options = parse_args([])
    assert (options.cdn, options.meta, options.fss, options.location) == (
        "localhost:2000",
        "localhost:4000",
        "localhost:5000",
        "la",
    )


def test_parse_args_three_addresses():
    options = parse_args(["c:1", "m:2", "f:3"])
    assert (options.cdn, options.meta, options.fss) == ("c:1", "m:2", "f:3")
    assert options.location == "la"


def test_parse_args_with_location():
    options = parse_args(["c:1", "m:2", "f:3", "sf"])
    assert options.location == "sf"
    assert options.fss == "f:3"


def test_parse_args_ignores_incomplete_addresses():
    options = parse_args(["c:1", "m:2"])
    assert options.cdn == "localhost:2000"
    assert options.meta == "localhost:4000"


def test_main_registers_and_stops(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "stdin", io.StringIO("\n"))
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST, "http://meta.example.com:4000/meta/register/", json={"CdnId": 2}
        )
        result = main(["127.0.0.1:0", "meta.example.com:4000", "fss.example.com:5000", "sf"])
        body = json.loads(rsps.calls[0].request.body)
    assert result == 0
    assert body == {"Type": 0, "IP": "127.0.0.1:0", "Lat": 37.77, "Lng": -122.42}
    assert (tmp_path / "cache").is_dir()