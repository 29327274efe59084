"""Object identifiers, object types, content inference and core metadata."""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass, field
from enum import IntEnum

from .kstring import parse_hex_id

META_MAGIC = 0x4D455441
META_FLAG_EXECUTABLE = 0x01

_UINT32_MASK = 0xFFFFFFFF
_SAMPLE_LIMIT = 256
_TEXT_CONTROLS = frozenset(b"\n\r\t")
_CORE_FORMAT = struct.Struct("<IIQQIQQQII")


class MetaFSError(Exception):
    """Raised when a metadata filesystem operation fails."""


@dataclass(frozen=True)
class ObjectId:
    """A 128-bit object identifier split into two halves."""

    high: int = 0
    low: int = 0

    def to_hex(self) -> str:
        """Sixteen lower-case hex digits of the low 32 bits of each half."""
        return f"{self.high & _UINT32_MASK:08x}{self.low & _UINT32_MASK:08x}"

    @classmethod
    def from_hex(cls, text: str) -> "ObjectId":
        """Parse the first 16 hex digits of *text*."""
        try:
            high, low = parse_hex_id(text)
        except ValueError as exc:
            raise MetaFSError(f"invalid object id: {text!r}") from exc
        return cls(high, low)

    def __str__(self) -> str:
        return self.to_hex()


NULL_ID = ObjectId(0, 0)


class ObjectType(IntEnum):
    """Kinds of objects the filesystem knows."""

    UNKNOWN = 0
    EXECUTABLE = 1
    DOCUMENT = 2
    IMAGE = 3
    VIDEO = 4
    AUDIO = 5
    ARCHIVE = 6
    DATA = 7


_TYPE_NAMES = {
    ObjectType.EXECUTABLE: "executable",
    ObjectType.DOCUMENT: "document",
    ObjectType.IMAGE: "image",
    ObjectType.VIDEO: "video",
    ObjectType.AUDIO: "audio",
    ObjectType.ARCHIVE: "archive",
    ObjectType.DATA: "data",
}


def type_name(obj_type: int) -> str:
    """Lower-case name of *obj_type*, ``"unknown"`` for anything unrecognised."""
    return _TYPE_NAMES.get(obj_type, "unknown")


def crc32(data: bytes) -> int:
    """Standard reflected CRC-32 of *data*."""
    return zlib.crc32(bytes(data)) & _UINT32_MASK


def infer_type(data: bytes) -> ObjectType:
    """Guess an object's type from its leading bytes."""
    if data is None or len(data) < 4:
        return ObjectType.UNKNOWN
    if data[:4] == b"\x7fELF":
        return ObjectType.EXECUTABLE
    if len(data) >= 8 and data[:4] == b"\x89PNG":
        return ObjectType.IMAGE
    if data[:2] == b"\xff\xd8":
        return ObjectType.IMAGE

    sample = bytes(data[:_SAMPLE_LIMIT])
    # The printable counter is eight bits wide and wraps at 256.
    printable = sum(1 for b in sample if 32 <= b <= 126 or b in _TEXT_CONTROLS) & 0xFF
    if printable > len(sample) * 9 // 10:
        return ObjectType.DOCUMENT
    return ObjectType.DATA


@dataclass
class CoreMetadata:
    """Fixed metadata kept for every object, protected by a CRC-32."""

    magic: int = META_MAGIC
    version: int = 1
    id: ObjectId = field(default=NULL_ID)
    type: ObjectType = ObjectType.UNKNOWN
    created: int = 0
    modified: int = 0
    size: int = 0
    flags: int = 0
    checksum: int = 0

    def pack(self) -> bytes:
        """Serialise to the little-endian on-disk layout, checksum last."""
        return _CORE_FORMAT.pack(
            self.magic,
            self.version,
            self.id.high,
            self.id.low,
            int(self.type),
            self.created,
            self.modified,
            self.size,
            self.flags,
            self.checksum,
        )

    def compute_checksum(self) -> int:
        """CRC-32 of every field that precedes the checksum."""
        return crc32(self.pack()[:-4])

    def is_valid(self) -> bool:
        """True when the magic matches and the stored checksum is correct."""
        return self.magic == META_MAGIC and self.checksum == self.compute_checksum()