import pytest

from osax.exfat import ExfatVolume, RamDisk, format_volume
from osax.metafs import MAX_VIEWS, MetaFS, ViewDefinition
from osax.objects import NULL_ID, MetaFSError, ObjectId, ObjectType
from osax.views import (
    MAX_LIST_ENTRIES,
    ViewEntry,
    create_view,
    default_object_name,
    list_view,
    normalize_path,
    path_is_valid,
    path_view_name,
    resolve_shell_path,
    view_exists,
)

DEFAULT_NAMES = ["kernel", "data", "boot", "config", "apps", "documents", "media"]


@pytest.fixture
def volume():
    disk = RamDisk(1)
    format_volume(disk, disk.sector_count)
    return ExfatVolume.mount(disk)


@pytest.fixture
def fs(volume):
    meta = MetaFS(volume)
    meta.format()
    return meta


@pytest.mark.parametrize("path", ["/", "", "/apps", "apps", "/apps/tool", "/media/"])
def test_view_exists_true(fs, path):
    assert view_exists(fs, path) is True


@pytest.mark.parametrize("path", ["/nothing", "//apps", "/" + "a" * 64, None])
def test_view_exists_false(fs, path):
    assert view_exists(fs, path) is False


def test_list_root_lists_views(fs):
    entries = list_view(fs, "/")
    assert [e.name for e in entries] == DEFAULT_NAMES
    assert all(e.id == NULL_ID and e.type == ObjectType.UNKNOWN for e in entries)


def test_list_view_filters_by_type(fs):
    exe = fs.create_object(ObjectType.EXECUTABLE)
    fs.create_object(ObjectType.DATA)
    entries = list_view(fs, "/apps")
    assert entries == [ViewEntry(name=default_object_name(exe), id=exe, type=ObjectType.EXECUTABLE)]


def test_list_view_ignores_rest_of_path(fs):
    doc = fs.create_object(ObjectType.DOCUMENT)
    assert [e.id for e in list_view(fs, "documents/whatever")] == [doc]


def test_list_view_unknown_filter_matches_all(fs):
    fs.views.append(ViewDefinition(name="all", filter_type=ObjectType.UNKNOWN))
    ids = [fs.create_object(t) for t in (ObjectType.DATA, ObjectType.IMAGE)]
    assert [e.id for e in list_view(fs, "/all")] == ids


def test_list_view_caps_entries(fs):
    for _ in range(MAX_LIST_ENTRIES + 2):
        fs.create_object(ObjectType.DATA)
    assert len(list_view(fs, "/data")) == MAX_LIST_ENTRIES


def test_list_view_missing_view(fs):
    with pytest.raises(MetaFSError):
        list_view(fs, "/missing")


def test_list_view_name_too_long(fs):
    with pytest.raises(MetaFSError):
        list_view(fs, "/" + "v" * 64)


def test_default_object_name():
    assert default_object_name(ObjectId(0, 5)) == "obj_0000000000000005"


def test_create_view_adds_and_persists(fs, volume):
    view = create_view(fs, "reports", ObjectType.DOCUMENT)
    assert view.filter_type == ObjectType.DOCUMENT
    assert view_exists(fs, "/reports")
    assert len(fs.views) == len(DEFAULT_NAMES) + 1

    other = MetaFS(volume)
    assert other.mount() is True
    assert len(other.views) == len(fs.views)


def test_create_view_duplicate(fs):
    with pytest.raises(MetaFSError):
        create_view(fs, "apps", ObjectType.EXECUTABLE)


def test_create_view_capacity(fs):
    while len(fs.views) < MAX_VIEWS:
        fs.views.append(ViewDefinition(name=f"v{len(fs.views)}"))
    with pytest.raises(MetaFSError):
        create_view(fs, "extra", ObjectType.DATA)
    assert len(fs.views) == MAX_VIEWS


@pytest.mark.parametrize(
    "path, expected",
    [("/apps/tool", "apps"), ("/", ""), ("docs", "docs"), ("/media", "media")],
)
def test_path_view_name(path, expected):
    assert path_view_name(path) == expected


@pytest.mark.parametrize(
    "current, path, expected",
    [
        ("/", "apps", "/apps"),
        ("/apps", "..", "/"),
        ("/apps", "./tool", "/apps/tool"),
        ("/apps", "../media", "/media"),
        ("/", "..", "/"),
        ("/", "//apps///tool", "/apps/tool"),
        ("/apps", "/media", "/media"),
        ("/apps", ".", "/apps"),
    ],
)
def test_normalize_path(current, path, expected):
    assert normalize_path(current, path) == expected


def test_normalize_path_too_deep():
    with pytest.raises(ValueError):
        normalize_path("/", "/a/b/c")


def test_normalize_path_is_idempotent():
    once = normalize_path("/apps", "../docs/./x")
    assert normalize_path("/", once) == once


def test_path_is_valid():
    assert path_is_valid("/apps", "tool") is True
    assert path_is_valid("/apps", "a/b") is False


def test_resolve_shell_path(fs):
    oid = fs.create_object(ObjectType.EXECUTABLE)
    fs.link("apps", "tool", oid)
    assert resolve_shell_path(fs, "/apps", "tool") == oid
    assert resolve_shell_path(fs, "/media", "../apps/tool") == oid


def test_resolve_shell_path_invalid(fs):
    with pytest.raises(MetaFSError):
        resolve_shell_path(fs, "/", "/a/b/c")