"""exFAT directory entry sets, FAT cluster allocation and root-directory creation."""

from __future__ import annotations

import struct

from .exfat import (
    ATTR_ARCHIVE,
    ATTR_DIRECTORY,
    END_OF_CHAIN,
    ENTRY_SIZE,
    EntryType,
    ExfatError,
    ExfatVolume,
)

NAME_CHARS_PER_ENTRY = 15
MAX_NAME_LENGTH = 255
FREE_CLUSTER = 0
STREAM_FLAG_ALLOCATION_POSSIBLE = 0x01

# type, secondary_count, set_checksum, file_attributes (timestamps left zero)
FILE_ENTRY = struct.Struct("<BBHH26x")
# type, flags, name_length, name_hash, valid_data_length, first_cluster, data_length
STREAM_ENTRY = struct.Struct("<BBxBH2xQ4xIQ")
# type, flags, 15 UTF-16 code units
NAME_ENTRY = struct.Struct("<BB30s")

_UINT16_MASK = 0xFFFF


def _rotate16(value: int) -> int:
    return ((value << 15) | (value >> 1)) & _UINT16_MASK


def _code_units(name: str) -> list[int]:
    return [ord(ch) & _UINT16_MASK for ch in name]


def _check_name(name: str) -> None:
    if len(name) > MAX_NAME_LENGTH:
        raise ExfatError(f"name too long: {len(name)} characters, limit {MAX_NAME_LENGTH}")


def _name_entry_count(name: str) -> int:
    return (len(name) + NAME_CHARS_PER_ENTRY - 1) // NAME_CHARS_PER_ENTRY


def _strip_root(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def entry_set_checksum(data: bytes, count: int) -> int:
    """16-bit checksum over *count* entries, skipping the checksum field itself."""
    checksum = 0
    for i, byte in enumerate(bytes(data[:count * ENTRY_SIZE])):
        if i in (2, 3):
            continue
        checksum = (_rotate16(checksum) + byte) & _UINT16_MASK
    return checksum


def name_hash(name: str) -> int:
    """Name hash over the name with ASCII letters upper-cased."""
    value = 0
    for unit in _code_units(name):
        if ord("a") <= unit <= ord("z"):
            unit -= 32
        value = (_rotate16(value) + unit) & _UINT16_MASK
    return value


def alloc_cluster(volume: ExfatVolume) -> int:
    """Find the first free FAT entry, mark it end-of-chain and return its cluster."""
    bytes_per_sector = volume.bytes_per_sector
    cached_sector: int | None = None
    data = b""
    for cluster in range(2, volume.boot_sector.cluster_count + 2):
        sector, offset = divmod(cluster * 4, bytes_per_sector)
        sector += volume.fat_start_sector
        if sector != cached_sector:
            data = volume.disk.read_sector(sector)
            cached_sector = sector
        (entry,) = struct.unpack_from("<I", data, offset)
        if entry == FREE_CLUSTER:
            patched = bytearray(data)
            struct.pack_into("<I", patched, offset, END_OF_CHAIN)
            volume.disk.write_sector(sector, bytes(patched))
            return cluster
    raise ExfatError("no free clusters available")


def write_fat_entry(volume: ExfatVolume, cluster: int, value: int) -> None:
    """Set the FAT entry of *cluster* to *value*."""
    sector, offset = divmod(cluster * 4, volume.bytes_per_sector)
    sector += volume.fat_start_sector
    data = bytearray(volume.disk.read_sector(sector))
    struct.pack_into("<I", data, offset, value & 0xFFFFFFFF)
    volume.disk.write_sector(sector, bytes(data))


def find_free_entry(volume: ExfatVolume, dir_cluster: int, entries_needed: int) -> int:
    """Index of the first run of *entries_needed* free entries in *dir_cluster*."""
    data = volume.read_cluster(dir_cluster)
    run = 0
    start = 0
    for index, offset in enumerate(range(0, len(data), ENTRY_SIZE)):
        if data[offset] == EntryType.EOD:
            if run == 0:
                start = index
            run += 1
            if run >= entries_needed:
                return start
        else:
            run = 0
    raise ExfatError("no space in directory")


def build_entry_set(name: str, first_cluster: int, attributes: int) -> bytes:
    """File, stream extension and name entries for *name*, checksum filled in."""
    _check_name(name)
    units = _code_units(name)
    name_entries = _name_entry_count(name)
    total = 2 + name_entries
    buf = bytearray(total * ENTRY_SIZE)

    FILE_ENTRY.pack_into(buf, 0, EntryType.FILE, 1 + name_entries, 0, attributes)
    STREAM_ENTRY.pack_into(
        buf,
        ENTRY_SIZE,
        EntryType.STREAM,
        STREAM_FLAG_ALLOCATION_POSSIBLE,
        len(units),
        name_hash(name),
        0,
        first_cluster,
        0,
    )
    chunks = (
        units[start:start + NAME_CHARS_PER_ENTRY]
        for start in range(0, len(units), NAME_CHARS_PER_ENTRY)
    )
    for slot, chunk in enumerate(chunks, start=2):
        encoded = struct.pack(f"<{len(chunk)}H", *chunk)
        NAME_ENTRY.pack_into(buf, slot * ENTRY_SIZE, EntryType.FILE_NAME, 0, encoded)

    struct.pack_into("<H", buf, 2, entry_set_checksum(buf, total))
    return bytes(buf)


def _add_root_entry(volume: ExfatVolume, name: str, attributes: int) -> int:
    _check_name(name)
    total = 2 + _name_entry_count(name)
    index = find_free_entry(volume, volume.root_dir_cluster, total)
    cluster = alloc_cluster(volume)
    entry_set = build_entry_set(name, cluster, attributes)
    directory = bytearray(volume.read_cluster(volume.root_dir_cluster))
    start = index * ENTRY_SIZE
    directory[start:start + len(entry_set)] = entry_set
    volume.write_cluster(volume.root_dir_cluster, bytes(directory))
    return cluster


def mkdir(volume: ExfatVolume, path: str) -> int:
    """Create a directory entry in the root; return the new directory's cluster."""
    cluster = _add_root_entry(volume, _strip_root(path), ATTR_DIRECTORY)
    volume.write_cluster(cluster, b"")
    return cluster


def create(volume: ExfatVolume, path: str) -> int:
    """Create an empty file in the root; return its first cluster."""
    name = _strip_root(path)
    if "/" in name:
        raise ExfatError("subdirectory support not implemented")
    return _add_root_entry(volume, name, ATTR_ARCHIVE)