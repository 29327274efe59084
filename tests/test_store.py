import pytest

from osax import store
from osax.direntry import create
from osax.exfat import ExfatVolume, RamDisk, format_volume
from osax.fileops import open_file
from osax.index import ObjectIndex
from osax.objects import MetaFSError, ObjectId, ObjectType


@pytest.fixture
def volume():
    disk = RamDisk(1)
    format_volume(disk, disk.sector_count)
    return ExfatVolume.mount(disk)


def test_data_filename_format():
    assert store.data_filename(ObjectId(0, 1)) == "data.0000000000000001"


def test_link_filename_format():
    assert store.link_filename("apps", "editor") == "views.apps.editor"


def test_write_and_read_object_data(volume):
    oid = ObjectId(0, 7)
    assert store.write_object_data(volume, oid, b"hello world") == 11
    assert store.read_object_data(volume, oid, 100) == b"hello world"


def test_read_partial(volume):
    oid = ObjectId(0, 3)
    store.write_object_data(volume, oid, b"abcdef")
    assert store.read_object_data(volume, oid, 3) == b"abc"


def test_large_data_spans_clusters(volume):
    oid = ObjectId(0, 9)
    payload = (bytes(range(256)) * 20)[:5000]
    assert store.write_object_data(volume, oid, payload) == len(payload)
    assert store.read_object_data(volume, oid, len(payload)) == payload


def test_read_missing_object_raises(volume):
    with pytest.raises(MetaFSError):
        store.read_object_data(volume, ObjectId(0, 99), 10)


def test_link_roundtrip(volume):
    oid = ObjectId(0x1, 0x2A)
    store.write_link(volume, "apps", "editor", oid)
    assert store.resolve_path(volume, "/apps/editor") == oid
    assert store.resolve_path(volume, "apps/editor") == oid


def test_link_file_holds_hex_id(volume):
    oid = ObjectId(0, 0x2A)
    store.write_link(volume, "docs", "note", oid)
    with open_file(volume, "views.docs.note") as handle:
        assert handle.read(32) == oid.to_hex().encode("ascii")


def test_resolve_without_slash_raises(volume):
    with pytest.raises(MetaFSError):
        store.resolve_path(volume, "/apps")


def test_resolve_long_view_name_raises(volume):
    with pytest.raises(MetaFSError):
        store.resolve_path(volume, "/" + "v" * 64 + "/x")


def test_resolve_missing_link_raises(volume):
    with pytest.raises(MetaFSError):
        store.resolve_path(volume, "/apps/nothing")


def test_resolve_short_link_raises(volume):
    create(volume, "views.apps.short")
    with open_file(volume, "views.apps.short") as handle:
        handle.write(b"12345")
    with pytest.raises(MetaFSError):
        store.resolve_path(volume, "/apps/short")


def test_save_and_load_index(volume):
    index = ObjectIndex(16)
    first = index.create_object(ObjectType.DOCUMENT)
    second = index.create_object(ObjectType.EXECUTABLE)
    index.set_name(first, "notes")
    index.set_view(second, "apps")
    index.set_extension(second, "elf")
    store.save_index(volume, index, 5)

    loaded = ObjectIndex(16)
    assert store.load_index(volume, loaded) == 5
    assert [e.id for e in loaded] == [first, second]
    assert loaded.get_name(first) == "notes"
    assert loaded.get_view(second) == "apps"
    assert loaded.get_extension(second) == "elf"
    assert loaded.find(second).type == ObjectType.EXECUTABLE
    assert loaded.last_object_id == second.low


def test_resave_overwrites_index(volume):
    index = ObjectIndex(16)
    for _ in range(3):
        index.create_object(ObjectType.DATA)
    store.save_index(volume, index, 1)
    index.delete_object(ObjectId(0, 2))
    store.save_index(volume, index, 2)

    loaded = ObjectIndex(16)
    assert store.load_index(volume, loaded) == 2
    assert [e.id for e in loaded] == [ObjectId(0, 1), ObjectId(0, 3)]


def test_load_without_index_raises(volume):
    with pytest.raises(MetaFSError):
        store.load_index(volume, ObjectIndex(4))


def test_load_bad_magic_raises(volume):
    create(volume, store.INDEX_FILENAME)
    with open_file(volume, store.INDEX_FILENAME) as handle:
        handle.write(b"\0" * 64)
    index = ObjectIndex(4)
    with pytest.raises(MetaFSError):
        store.load_index(volume, index)
    assert len(index) == 0


def test_load_over_capacity_raises(volume):
    index = ObjectIndex(8)
    for _ in range(4):
        index.create_object(ObjectType.DATA)
    store.save_index(volume, index, 0)
    with pytest.raises(MetaFSError):
        store.load_index(volume, ObjectIndex(2))