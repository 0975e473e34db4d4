import pytest

from cdnsync.address import Address
from cdnsync.meta_server import (
    MetaError,
    MetaServer,
    SyncPlan,
    construct_line,
    parse_line,
    parse_timestamp_line,
)

LA_CLIENT = Address(34.05, -118.44, "0.0.0.0")
SF = Address(37.77, -122.42, "1.1.1.1")
SEATTLE = Address(47.61, -122.33, "2.2.2.2")
BAHAMA = Address(25.03, -77.40, "3.3.3.3")
NORTH_KOREA = Address(40.34, 127.51, "4.4.4.4")
AUSTIN_FSS = Address(30.27, -97.74, "255.255.255.255")


@pytest.fixture
def meta(tmp_path):
    return MetaServer("localhost:4000", "metaFile", tmp_path / "MetaData", None)


def test_parse_line_with_cdns():
    assert parse_line("/a.txt ahash 1 2") == ("/a.txt", "ahash", [1, 2])


def test_parse_line_without_cdns():
    assert parse_line("/a.txt ahash") == ("/a.txt", "ahash", [])


def test_construct_and_parse_round_trip():
    line = construct_line("/dir/b.txt", "bhash", [3, 0, 7])
    assert parse_line(line) == ("/dir/b.txt", "bhash", [3, 0, 7])


def test_construct_line_without_cdns_round_trips():
    assert parse_line(construct_line("/c.txt", "chash", [])) == ("/c.txt", "chash", [])


def test_parse_timestamp_line():
    assert parse_timestamp_line("/a.txt 12312312312") == ("/a.txt", "12312312312")


def test_rejects_file_name_with_space(tmp_path):
    with pytest.raises(ValueError):
        MetaServer("localhost:4000", "meta file", tmp_path, None)


def test_register_assigns_increasing_ids(meta):
    first = meta.register_cdn(SF)
    second = meta.register_cdn(SEATTLE)
    assert second == first + 1
    assert meta.cdn_addresses() == {first: SF, second: SEATTLE}


def test_unregister(meta):
    cdn_id = meta.register_cdn(SF)
    meta.unregister_cdn(cdn_id)
    assert meta.cdn_addresses() == {}
    with pytest.raises(MetaError):
        meta.unregister_cdn(cdn_id)


def test_add_entry_and_lookup(meta):
    meta.add_entry("/a.txt", "ahash", [1, 2])
    assert meta.exists("/a.txt")
    assert not meta.exists("/a")
    assert meta.cdns_containing("/a.txt") == [1, 2]
    assert meta.cdns_containing("/b.txt") == []


def test_add_entry_twice_fails(meta):
    meta.add_entry("/a.txt", "ahash", [])
    with pytest.raises(MetaError):
        meta.add_entry("/a.txt", "other", [])


def test_cdns_containing_without_metadata_fails(meta):
    with pytest.raises(MetaError):
        meta.cdns_containing("/a.txt")


def test_delete_entry(meta):
    meta.add_entry("/a.txt", "ahash", [1])
    meta.add_entry("/b.txt", "bhash", [2])
    assert meta.delete_entry("/a.txt") is True
    assert not meta.exists("/a.txt")
    assert meta.cdns_containing("/b.txt") == [2]
    assert meta.delete_entry("/a.txt") is False


def test_update_entry_replaces_and_adds(meta):
    meta.update_entry("/a.txt", "old", [1, 2])
    meta.update_entry("/a.txt", "new", [5])
    assert meta.cdns_containing("/a.txt") == [5]
    uploads = meta.process_upload([("/a.txt", "new")], LA_CLIENT)
    assert uploads == []


def test_add_cdn_to_entry(meta):
    meta.add_entry("/a.txt", "ahash", [1])
    meta.add_cdn_to_entry("/a.txt", 4)
    assert meta.cdns_containing("/a.txt") == [1, 4]
    meta.add_cdn_to_entry("/a.txt", 4)
    assert meta.cdns_containing("/a.txt") == [1, 4]


def test_add_cdn_to_missing_entry_fails(meta):
    meta.add_entry("/a.txt", "ahash", [])
    with pytest.raises(MetaError):
        meta.add_cdn_to_entry("/b.txt", 1)
    assert meta.cdns_containing("/a.txt") == []


def test_delete_cdn_from_entry(meta):
    meta.add_entry("/a.txt", "ahash", [1, 2, 3])
    meta.delete_cdn_from_entry("/a.txt", 2)
    assert meta.cdns_containing("/a.txt") == [1, 3]
    with pytest.raises(MetaError):
        meta.delete_cdn_from_entry("/a.txt", 2)
    with pytest.raises(MetaError):
        meta.delete_cdn_from_entry("/zzz.txt", 1)


def test_many_rewrites_keep_data(meta):
    meta.add_entry("/a.txt", "ahash", [])
    for cdn_id in range(15):
        meta.add_cdn_to_entry("/a.txt", cdn_id)
    assert meta.cdns_containing("/a.txt") == list(range(15))


def test_closest_cdn(meta):
    sf_id = meta.register_cdn(SF)
    st_id = meta.register_cdn(SEATTLE)
    bh_id = meta.register_cdn(BAHAMA)
    assert meta.closest_cdn([st_id, bh_id, sf_id], LA_CLIENT) == sf_id
    assert meta.closest_cdn([], LA_CLIENT) is None
    assert meta.closest_cdn([bh_id + 100], LA_CLIENT) is None


def test_is_cdn_closer_than_fss(meta):
    meta.set_fss_address(AUSTIN_FSS)
    sf_id = meta.register_cdn(SF)
    nk_id = meta.register_cdn(NORTH_KOREA)
    assert meta.is_cdn_closer_than_fss(sf_id, LA_CLIENT) is True
    assert meta.is_cdn_closer_than_fss(nk_id, LA_CLIENT) is False
    assert meta.is_cdn_closer_than_fss(nk_id + 10, LA_CLIENT) is False


def test_process_download(meta):
    meta.set_fss_address(AUSTIN_FSS)
    sf_id = meta.register_cdn(SF)
    nk_id = meta.register_cdn(NORTH_KOREA)
    st_id = meta.register_cdn(SEATTLE)
    meta.add_entry("/same.txt", "h1", [sf_id])
    meta.add_entry("/changed.txt", "h2", [st_id])
    meta.add_entry("/far.txt", "h3", [nk_id])
    meta.add_entry("/remote.txt", "h4", [sf_id])
    client_files = [("/same.txt", "h1"), ("/changed.txt", "old"), ("/far.txt", "old")]

    result = dict(meta.process_download(client_files, LA_CLIENT))
    assert "/same.txt" not in result
    assert result["/changed.txt"] == SEATTLE
    assert result["/far.txt"] == SF
    assert result["/remote.txt"] == SF

    shared = dict(meta.process_download(client_files, LA_CLIENT, True))
    assert set(shared) == {"/changed.txt", "/far.txt"}


def test_process_download_without_metadata_is_empty(meta):
    assert meta.process_download([("/a.txt", "h")], LA_CLIENT) == []


def test_process_upload(meta):
    sf_id = meta.register_cdn(SF)
    meta.register_cdn(NORTH_KOREA)
    meta.add_entry("/same.txt", "h1", [sf_id])
    meta.add_entry("/changed.txt", "h2", [sf_id])
    meta.add_entry("/server_only.txt", "h3", [sf_id])
    client_files = [("/same.txt", "h1"), ("/changed.txt", "new"), ("/fresh.txt", "h5")]

    result = meta.process_upload(client_files, LA_CLIENT)
    assert result == [("/changed.txt", SF), ("/fresh.txt", SF)]

    shared = meta.process_upload(client_files, LA_CLIENT, True)
    assert shared == [("/changed.txt", SF)]


def test_sync_without_timestamp_file_fails(meta):
    with pytest.raises(MetaError):
        meta.sync_with_timestamps([("/a.txt", "100")])


def test_sync_with_timestamps(meta):
    meta.add_timestamp("/newer_on_client.txt", "100")
    meta.add_timestamp("/newer_on_server.txt", "300")
    meta.add_timestamp("/server_only.txt", "50")
    plan = meta.sync_with_timestamps(
        [("/newer_on_client.txt", "200"), ("/newer_on_server.txt", "200"), ("/client_only.txt", "1")]
    )
    assert plan == SyncPlan(
        upload=["/newer_on_client.txt"],
        download=["/newer_on_server.txt", "/server_only.txt"],
        timestamps={"/newer_on_server.txt": "300", "/server_only.txt": "50"},
    )


def test_equal_timestamps_download(meta):
    meta.add_timestamp("/a.txt", "100")
    plan = meta.sync_with_timestamps([("/a.txt", "100")])
    assert plan.download == ["/a.txt"]
    assert plan.upload == []


def test_update_timestamp(meta):
    meta.update_timestamp("/a.txt", "100")
    meta.update_timestamp("/b.txt", "100")
    meta.update_timestamp("/a.txt", "500")
    plan = meta.sync_with_timestamps([])
    assert plan.timestamps == {"/b.txt": "100", "/a.txt": "500"}


def test_delete_timestamp(meta):
    with pytest.raises(MetaError):
        meta.delete_timestamp("/a.txt")
    meta.add_timestamp("/a.txt", "100")
    meta.delete_timestamp("/a.txt")
    assert meta.sync_with_timestamps([]).download == []
    with pytest.raises(MetaError):
        meta.delete_timestamp("/a.txt")


def test_cdn_load_ok(meta):
    assert meta.cdn_load_ok(0) is True