import pytest

from osax.exfat import ExfatVolume, RamDisk, format_volume
from osax.metafs import MetaFS, ViewDefinition, ViewType
from osax.objects import MetaFSError, ObjectId, ObjectType


@pytest.fixture
def volume():
    disk = RamDisk(1)
    format_volume(disk, disk.sector_count)
    return ExfatVolume.mount(disk)


@pytest.fixture
def fs(volume):
    return MetaFS(volume)


def test_format_creates_system_and_user_views(fs):
    fs.format()
    assert [v.name for v in fs.views] == [
        "kernel", "data", "boot", "config", "apps", "documents", "media",
    ]
    apps = fs.views[4]
    assert apps.type == ViewType.STATIC_APPS
    assert apps.filter_type == ObjectType.EXECUTABLE
    assert fs.views[6].filter_type == ObjectType.IMAGE
    assert fs.views[5].type == ViewType.STATIC_DOCUMENTS


def test_create_object_sequential_ids(fs):
    first = fs.create_object(ObjectType.DATA)
    second = fs.create_object(ObjectType.IMAGE)
    assert second.low == first.low + 1
    assert fs.index.find(second).type == ObjectType.IMAGE


def test_create_object_limit(volume):
    fs = MetaFS(volume, max_objects=1)
    fs.create_object(ObjectType.DATA)
    with pytest.raises(MetaFSError):
        fs.create_object(ObjectType.DATA)


def test_import_system_files(fs):
    objects_db, system_state = fs.import_system_files()
    assert fs.index.get_name(objects_db) == "objects"
    assert fs.index.get_extension(objects_db) == "db"
    assert fs.index.get_name(system_state) == "system"
    assert fs.index.get_extension(system_state) == "state"
    assert fs.index.get_view(objects_db) == "kernel"
    assert fs.index.find(system_state).type == ObjectType.DATA
    assert fs.read_data(objects_db, 10) == b""


def test_write_read_data(fs):
    oid = fs.create_object(ObjectType.DOCUMENT)
    assert fs.write_data(oid, b"some text") == 9
    assert fs.read_data(oid, 64) == b"some text"


def test_read_unwritten_raises(fs):
    oid = fs.create_object(ObjectType.DATA)
    with pytest.raises(MetaFSError):
        fs.read_data(oid, 4)


def test_link_and_resolve(fs):
    oid = fs.create_object(ObjectType.EXECUTABLE)
    fs.link("apps", "shell", oid)
    assert fs.resolve_path("/apps/shell") == oid


def test_resolve_bad_path(fs):
    with pytest.raises(MetaFSError):
        fs.resolve_path("noslash")


def test_mount_fresh_returns_false(fs):
    assert fs.mount() is False
    assert len(fs.index) == 0


def test_sync_then_mount_restores_index(volume):
    fs = MetaFS(volume)
    fs.format()
    ids = [fs.create_object(ObjectType.DATA) for _ in range(3)]
    fs.index.set_name(ids[1], "middle")
    fs.sync()

    other = MetaFS(volume)
    assert other.mount() is True
    assert [e.id for e in other.index] == ids
    assert other.index.get_name(ids[1]) == "middle"
    assert len(other.views) == len(fs.views)
    assert other.views[0] == ViewDefinition()
    new = other.create_object(ObjectType.DATA)
    assert new not in ids
    assert new.low == max(i.low for i in ids) + 1


def test_load_index_keeps_matching_views(volume):
    fs = MetaFS(volume)
    fs.format()
    fs.sync()
    before = list(fs.views)
    fs.load_index()
    assert fs.views == before


def test_load_index_truncates_views(volume):
    fs = MetaFS(volume)
    fs.format()
    fs.sync()
    fs.views.append(ViewDefinition("extra", ViewType.STATIC_MEDIA, ObjectType.AUDIO))
    fs.load_index()
    assert [v.name for v in fs.views][-1] == "media"
    assert all(v.name != "extra" for v in fs.views)


def test_resolve_returns_object_id_type(fs):
    oid = ObjectId(0xABCDEF01, 0x10)
    fs.link("documents", "report", oid)
    resolved = fs.resolve_path("documents/report")
    assert (resolved.high, resolved.low) == (oid.high, oid.low)