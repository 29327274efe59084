"""The in-memory object index: entries, identifiers and per-object metadata."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Iterator

from .kstring import bounded_copy, parse_hex_id
from .objects import (
    META_FLAG_EXECUTABLE,
    CoreMetadata,
    MetaFSError,
    ObjectId,
    ObjectType,
)

NAME_LIMIT = 63
VIEW_LIMIT = 63
EXTENSION_LIMIT = 15
DEFAULT_MAX_OBJECTS = 1024

# id high, id low, type, data_offset, meta_offset, checksum, name, view, extension
_ENTRY_FORMAT = struct.Struct("<QQIQQI64s64s16s")
ENTRY_SIZE = _ENTRY_FORMAT.size


def _as_type(value: int) -> ObjectType | int:
    try:
        return ObjectType(int(value))
    except ValueError:
        return int(value)


def _encode(text: str, size: int) -> bytes:
    return text.encode("utf-8")[:size - 1]


def _decode(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="ignore")


@dataclass
class IndexEntry:
    """One object's record in the index."""

    id: ObjectId
    type: ObjectType | int = ObjectType.UNKNOWN
    data_offset: int = 0
    meta_offset: int = 0
    checksum: int = 0
    name: str = ""
    view: str = ""
    extension: str = ""

    def pack(self) -> bytes:
        """Serialise to the fixed-size on-disk record."""
        return _ENTRY_FORMAT.pack(
            self.id.high,
            self.id.low,
            int(self.type),
            self.data_offset,
            self.meta_offset,
            self.checksum,
            _encode(self.name, 64),
            _encode(self.view, 64),
            _encode(self.extension, 16),
        )

    @classmethod
    def unpack(cls, data: bytes) -> "IndexEntry":
        """Parse one record from the start of *data*."""
        if len(data) < ENTRY_SIZE:
            raise MetaFSError(f"index entry needs {ENTRY_SIZE} bytes, got {len(data)}")
        high, low, obj_type, data_offset, meta_offset, checksum, name, view, ext = (
            _ENTRY_FORMAT.unpack_from(data)
        )
        return cls(
            id=ObjectId(high, low),
            type=_as_type(obj_type),
            data_offset=data_offset,
            meta_offset=meta_offset,
            checksum=checksum,
            name=_decode(name),
            view=_decode(view),
            extension=_decode(ext),
        )


@dataclass
class ExtMetadata:
    """Extended metadata: the object's name, view and tags."""

    name: str
    view: str
    tags: str = ""


class ObjectIndex:
    """A bounded list of index entries with sequential object identifiers."""

    def __init__(self, max_objects: int = DEFAULT_MAX_OBJECTS) -> None:
        self.max_objects = max_objects
        self.entries: list[IndexEntry] = []
        self.last_object_id = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self.entries)

    def restore(self, entries: Iterable[IndexEntry]) -> None:
        """Replace the contents and continue numbering after the highest id."""
        self.entries = list(entries)
        self.last_object_id = max((e.id.low for e in self.entries), default=0)

    def generate_id(self) -> ObjectId:
        """Return the next identifier."""
        self.last_object_id += 1
        return ObjectId(0, self.last_object_id)

    def create_object(self, obj_type: int) -> ObjectId:
        """Add a new object of *obj_type* and return its identifier."""
        object_id = self.generate_id()
        kind = _as_type(obj_type)
        core = CoreMetadata(
            id=object_id,
            type=kind,
            flags=META_FLAG_EXECUTABLE if kind == ObjectType.EXECUTABLE else 0,
        )
        core.checksum = core.compute_checksum()
        if len(self.entries) >= self.max_objects:
            raise MetaFSError("object limit reached")
        self.entries.append(IndexEntry(id=object_id, type=kind, checksum=core.checksum))
        return object_id

    def find(self, object_id: ObjectId) -> IndexEntry:
        """Return the entry for *object_id*."""
        for entry in self.entries:
            if entry.id == object_id:
                return entry
        raise MetaFSError(f"object {object_id} not found")

    def _lookup(self, object_id: ObjectId) -> IndexEntry | None:
        try:
            return self.find(object_id)
        except MetaFSError:
            return None

    def set_name(self, object_id: ObjectId, name: str) -> None:
        """Set the name, cut to 63 characters."""
        self.find(object_id).name = bounded_copy(name, NAME_LIMIT)

    def get_name(self, object_id: ObjectId) -> str | None:
        """The object's name, or ``None`` if unset or unknown."""
        entry = self._lookup(object_id)
        return entry.name if entry and entry.name else None

    def set_view(self, object_id: ObjectId, view: str) -> None:
        """Set the view, cut to 63 characters."""
        self.find(object_id).view = bounded_copy(view, VIEW_LIMIT)

    def get_view(self, object_id: ObjectId) -> str | None:
        """The object's view, or ``None`` if unset or unknown."""
        entry = self._lookup(object_id)
        return entry.view if entry and entry.view else None

    def set_extension(self, object_id: ObjectId, ext: str) -> None:
        """Set the extension, cut to 15 characters."""
        self.find(object_id).extension = bounded_copy(ext, EXTENSION_LIMIT)

    def get_extension(self, object_id: ObjectId) -> str | None:
        """The object's extension, or ``None`` if unset or unknown."""
        entry = self._lookup(object_id)
        return entry.extension if entry and entry.extension else None

    def set_type(self, object_id: ObjectId, obj_type: int) -> None:
        """Change the recorded type."""
        self.find(object_id).type = _as_type(obj_type)

    def resolve_by_name(self, name: str) -> ObjectId | None:
        """A 16-hex-digit string is taken as an id; otherwise look the name up."""
        if name is None:
            return None
        if len(name) == 16:
            try:
                high, low = parse_hex_id(name)
            except ValueError:
                pass
            else:
                return ObjectId(high, low)
        for entry in self.entries:
            if entry.name and entry.name == name:
                return entry.id
        return None

    def delete_object(self, object_id: ObjectId) -> None:
        """Remove the object from the index."""
        self.entries.remove(self.find(object_id))

    def core_metadata(self, object_id: ObjectId) -> CoreMetadata:
        """Core metadata as recorded in the index."""
        entry = self.find(object_id)
        return CoreMetadata(
            id=object_id,
            type=entry.type,
            size=0,
            created=0,
            modified=0,
            flags=META_FLAG_EXECUTABLE if entry.type == ObjectType.EXECUTABLE else 0,
            checksum=entry.checksum,
        )

    def ext_metadata(self, object_id: ObjectId) -> ExtMetadata:
        """Name and view of the object; tags are always empty."""
        entry = self.find(object_id)
        return ExtMetadata(
            name=bounded_copy(entry.name, NAME_LIMIT),
            view=bounded_copy(entry.view, VIEW_LIMIT),
        )

    def set_ext_metadata(self, object_id: ObjectId, name: str, view: str) -> None:
        """Update name and view together."""
        entry = self.find(object_id)
        entry.name = bounded_copy(name, NAME_LIMIT)
        entry.view = bounded_copy(view, VIEW_LIMIT)

    def query_by_name(self, name: str, max_results: int) -> list[ObjectId]:
        """Identifiers of up to *max_results* objects named *name*, in index order."""
        if not name or max_results <= 0:
            return []
        return [e.id for e in self.entries if e.name and e.name == name][:max_results]