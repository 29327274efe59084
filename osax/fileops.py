"""Opening, reading and writing files in the root directory of an exFAT volume."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Iterator

from .direntry import FILE_ENTRY, NAME_ENTRY, STREAM_ENTRY, alloc_cluster, write_fat_entry
from .exfat import ATTR_DIRECTORY, ENTRY_SIZE, EntryType, ExfatError, ExfatVolume

log = logging.getLogger(__name__)

END_OF_CHAIN_MIN = 0xFFFFFFF8
_UINT32_MASK = 0xFFFFFFFF
_VALID_LENGTH_OFFSET = 8
_DATA_LENGTH_OFFSET = 24


@dataclass
class _EntrySet:
    index: int
    attributes: int
    name: str
    first_cluster: int
    data_length: int


def _strip_root(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def _scan(directory: bytes) -> Iterator[_EntrySet]:
    """Yield every file entry set in a directory cluster."""
    count = len(directory) // ENTRY_SIZE
    for index in range(count):
        offset = index * ENTRY_SIZE
        if directory[offset] != EntryType.FILE or index + 1 >= count:
            continue
        _, secondary_count, _, attributes = FILE_ENTRY.unpack_from(directory, offset)
        _, _, name_length, _, _, first_cluster, data_length = STREAM_ENTRY.unpack_from(
            directory, offset + ENTRY_SIZE
        )
        units: list[int] = []
        for slot in range(index + 2, index + 2 + max(secondary_count - 1, 0)):
            if len(units) >= name_length or slot >= count:
                break
            _, _, raw = NAME_ENTRY.unpack_from(directory, slot * ENTRY_SIZE)
            units.extend(struct.unpack("<15H", raw))
        name = "".join(chr(unit) for unit in units[:name_length]).ljust(name_length, "\0")
        yield _EntrySet(index, attributes, name, first_cluster, data_length)


def open_file(volume: ExfatVolume, path: str) -> "ExfatFile":
    """Open the root-directory file named by *path*."""
    name = _strip_root(path)
    directory = volume.read_cluster(volume.root_dir_cluster)
    for entry in _scan(directory):
        if entry.name == name:
            return ExfatFile(
                volume=volume,
                name=entry.name,
                first_cluster=entry.first_cluster,
                file_size=entry.data_length,
                attributes=entry.attributes,
                is_directory=bool(entry.attributes & ATTR_DIRECTORY),
            )
    raise ExfatError(f"file not found: {name!r}")


def update_file_size(volume: ExfatVolume, name: str, new_size: int) -> None:
    """Record *new_size* as the data length of the root-directory file *name*."""
    directory = bytearray(volume.read_cluster(volume.root_dir_cluster))
    for entry in _scan(bytes(directory)):
        if entry.name == name:
            stream = (entry.index + 1) * ENTRY_SIZE
            struct.pack_into("<Q", directory, stream + _VALID_LENGTH_OFFSET, new_size)
            struct.pack_into("<Q", directory, stream + _DATA_LENGTH_OFFSET, new_size)
            volume.write_cluster(volume.root_dir_cluster, bytes(directory))
            return
    raise ExfatError(f"file not found: {name!r}")


@dataclass
class ExfatFile:
    """An open file with a read/write position."""

    volume: ExfatVolume
    name: str
    first_cluster: int
    file_size: int
    attributes: int = 0
    position: int = 0
    is_open: bool = True
    is_directory: bool = False

    def __enter__(self) -> "ExfatFile":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.is_open:
            self.close()

    def _require_open(self) -> None:
        if not self.is_open:
            raise ExfatError(f"file {self.name!r} is not open")

    def _extend_chain(self, cluster: int) -> int:
        new_cluster = alloc_cluster(self.volume)
        write_fat_entry(self.volume, cluster, new_cluster)
        return new_cluster

    def read(self, size: int) -> bytes:
        """Read up to *size* bytes from the current position."""
        self._require_open()
        if size < 0:
            raise ValueError("size must not be negative")
        if self.position >= self.file_size:
            return b""
        size = min(size, self.file_size - self.position)

        volume = self.volume
        per_cluster = volume.bytes_per_cluster
        offset = self.position & _UINT32_MASK
        cluster = self.first_cluster
        for _ in range(offset // per_cluster):
            cluster = volume.next_cluster(cluster)
            if cluster >= END_OF_CHAIN_MIN:
                return b""

        in_cluster = offset % per_cluster
        chunks: list[bytes] = []
        done = 0
        while done < size:
            try:
                data = volume.read_cluster(cluster)
            except ExfatError:
                break
            take = min(per_cluster - in_cluster, size - done)
            chunks.append(data[in_cluster:in_cluster + take])
            done += take
            self.position += take
            in_cluster = 0
            if done < size:
                cluster = volume.next_cluster(cluster)
                if cluster >= END_OF_CHAIN_MIN:
                    break
        return b"".join(chunks)

    def write(self, data: bytes) -> int:
        """Write *data* at the current position, growing the chain; return bytes written."""
        self._require_open()
        payload = bytes(data)
        size = len(payload)
        volume = self.volume
        per_cluster = volume.bytes_per_cluster
        offset = self.position & _UINT32_MASK
        cluster = self.first_cluster

        for _ in range(offset // per_cluster):
            following = volume.next_cluster(cluster)
            if following >= END_OF_CHAIN_MIN:
                try:
                    cluster = self._extend_chain(cluster)
                except ExfatError:
                    return 0
            else:
                cluster = following

        in_cluster = offset % per_cluster
        written = 0
        while written < size:
            try:
                buffer = bytearray(volume.read_cluster(cluster))
            except ExfatError:
                buffer = bytearray(per_cluster)
            take = min(per_cluster - in_cluster, size - written)
            buffer[in_cluster:in_cluster + take] = payload[written:written + take]
            try:
                volume.write_cluster(cluster, bytes(buffer))
            except ExfatError:
                break
            written += take
            self.position += take
            in_cluster = 0
            if written < size:
                following = volume.next_cluster(cluster)
                if following >= END_OF_CHAIN_MIN:
                    try:
                        cluster = self._extend_chain(cluster)
                    except ExfatError:
                        break
                else:
                    cluster = following

        if self.position > self.file_size:
            self.file_size = self.position
            try:
                update_file_size(volume, self.name, self.file_size)
            except ExfatError:
                log.warning("could not update size of %r in directory", self.name)
        return written

    def seek(self, offset: int) -> None:
        """Move the position to *offset*."""
        self._require_open()
        if offset < 0:
            raise ValueError("offset must not be negative")
        self.position = offset

    def close(self) -> None:
        """Close the file; closing twice is an error."""
        self._require_open()
        self.is_open = False