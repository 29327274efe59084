"""On-volume storage of object data, view links and the object index."""

from __future__ import annotations

import struct
from contextlib import contextmanager
from typing import Iterator

from .direntry import create
from .exfat import ExfatError, ExfatVolume
from .fileops import open_file
from .index import ENTRY_SIZE as INDEX_ENTRY_SIZE
from .index import IndexEntry, ObjectIndex
from .objects import MetaFSError, ObjectId

INDEX_FILENAME = ".kernel.objects.db"
DATA_PREFIX = "data."
LINK_PREFIX = "views."
METADATA_DB_MAGIC = 0x4D444230
INDEX_VERSION = 1
VIEW_NAME_LIMIT = 64
LINK_ID_LENGTH = 16

# magic, version, num_objects, num_views, last_sync
_HEADER = struct.Struct("<IIIIQ")
HEADER_SIZE = _HEADER.size


@contextmanager
def _volume_errors(action: str) -> Iterator[None]:
    try:
        yield
    except ExfatError as exc:
        raise MetaFSError(f"{action}: {exc}") from exc


def data_filename(object_id: ObjectId) -> str:
    """Name of the file that holds the data of *object_id*."""
    return DATA_PREFIX + object_id.to_hex()


def link_filename(view_name: str, name: str) -> str:
    """Name of the link file for *name* in *view_name*."""
    return f"{LINK_PREFIX}{view_name}.{name}"


def write_object_data(volume: ExfatVolume, object_id: ObjectId, data: bytes) -> int:
    """Store *data* as the object's contents; return the number of bytes written."""
    filename = data_filename(object_id)
    with _volume_errors(f"cannot write {filename}"):
        create(volume, filename)
        with open_file(volume, filename) as handle:
            return handle.write(bytes(data))


def read_object_data(volume: ExfatVolume, object_id: ObjectId, size: int) -> bytes:
    """Read up to *size* bytes of the object's contents."""
    filename = data_filename(object_id)
    with _volume_errors(f"cannot read {filename}"):
        with open_file(volume, filename) as handle:
            return handle.read(size)


def write_link(volume: ExfatVolume, view_name: str, name: str, object_id: ObjectId) -> None:
    """Create a link file in *view_name* holding the 16 hex digits of *object_id*."""
    path = link_filename(view_name, name)
    with _volume_errors(f"cannot create link {path}"):
        create(volume, path)
        with open_file(volume, path) as handle:
            handle.write(object_id.to_hex().encode("ascii"))


def resolve_path(volume: ExfatVolume, path: str) -> ObjectId:
    """Resolve ``/<view>/<name>`` through its link file to an object id."""
    if path is None:
        raise MetaFSError("no path given")
    if path.startswith("/"):
        path = path[1:]
    view_name, sep, object_name = path.partition("/")
    if not sep:
        raise MetaFSError("invalid path format")
    if len(view_name) >= VIEW_NAME_LIMIT:
        raise MetaFSError("view name too long")
    link = link_filename(view_name, object_name)
    with _volume_errors(f"link file {link} not found"):
        with open_file(volume, link) as handle:
            raw = handle.read(LINK_ID_LENGTH)
    if len(raw) != LINK_ID_LENGTH:
        raise MetaFSError(f"link file {link} holds {len(raw)} bytes, expected {LINK_ID_LENGTH}")
    return ObjectId.from_hex(raw.decode("ascii", errors="replace"))


def save_index(volume: ExfatVolume, index: ObjectIndex, num_views: int) -> None:
    """Write the header and every index entry to the index file."""
    header = _HEADER.pack(METADATA_DB_MAGIC, INDEX_VERSION, len(index), num_views, 0)
    payload = header + b"".join(entry.pack() for entry in index)
    with _volume_errors("cannot save index"):
        create(volume, INDEX_FILENAME)
        with open_file(volume, INDEX_FILENAME) as handle:
            handle.write(payload)


def load_index(volume: ExfatVolume, index: ObjectIndex) -> int:
    """Fill *index* from the index file and return the recorded number of views."""
    with _volume_errors("no existing index"):
        with open_file(volume, INDEX_FILENAME) as handle:
            raw = handle.read(HEADER_SIZE)
            if len(raw) != HEADER_SIZE:
                raise MetaFSError("index header truncated")
            magic, _version, num_objects, num_views, _last_sync = _HEADER.unpack(raw)
            if magic != METADATA_DB_MAGIC:
                raise MetaFSError("invalid index magic")
            if num_objects > index.max_objects:
                raise MetaFSError(
                    f"index holds {num_objects} objects, capacity {index.max_objects}"
                )
            body = handle.read(num_objects * INDEX_ENTRY_SIZE)
    if len(body) != num_objects * INDEX_ENTRY_SIZE:
        raise MetaFSError("index entries truncated")
    index.restore(
        IndexEntry.unpack(body[start:start + INDEX_ENTRY_SIZE])
        for start in range(0, len(body), INDEX_ENTRY_SIZE)
    )
    return num_views