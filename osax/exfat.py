"""A RAM-backed exFAT volume: boot sector, formatting, mounting and cluster I/O."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

SECTOR_SIZE = 512
ENTRY_SIZE = 32
END_OF_CHAIN = 0xFFFFFFFF
MEDIA_DESCRIPTOR = 0xFFFFFFF8
BOOT_SIGNATURE = 0xAA55
FS_NAME = b"EXFAT   "

ATTR_DIRECTORY = 0x10
ATTR_ARCHIVE = 0x20

_UINT32_MASK = 0xFFFFFFFF
_BOOT_FORMAT = struct.Struct("<3s8s53xQQIIIIIIHHBBBBB7x390xH")
_CHECKSUM_SKIP = frozenset({106, 107, 112})


class ExfatError(Exception):
    """Raised when a disk or volume operation fails."""


class EntryType(IntEnum):
    """Directory entry type codes."""

    EOD = 0x00
    ALLOCATION = 0x81
    UPCASE = 0x82
    VOLUME_LABEL = 0x83
    FILE = 0x85
    STREAM = 0xC0
    FILE_NAME = 0xC1


_ENTRY_DESCRIPTIONS = {
    EntryType.VOLUME_LABEL: "Volume Label",
    EntryType.ALLOCATION: "Allocation Bitmap",
    EntryType.UPCASE: "Upcase Table",
    EntryType.FILE: "File",
    EntryType.STREAM: "Stream Extension",
    EntryType.FILE_NAME: "File Name",
}


class RamDisk:
    """A memory disk of fixed-size 512-byte sectors."""

    def __init__(self, size_mb: int) -> None:
        if size_mb <= 0:
            raise ExfatError("disk size must be positive")
        self.sector_count = (size_mb * 1024 * 1024) // SECTOR_SIZE
        self._data = bytearray(self.sector_count * SECTOR_SIZE)

    def _check(self, sector: int) -> int:
        if not 0 <= sector < self.sector_count:
            raise ExfatError(f"sector {sector} >= {self.sector_count}")
        return sector * SECTOR_SIZE

    def read_sector(self, sector: int) -> bytes:
        """Return the 512 bytes of *sector*."""
        start = self._check(sector)
        return bytes(self._data[start:start + SECTOR_SIZE])

    def write_sector(self, sector: int, data: bytes) -> None:
        """Store *data*, zero-padded to 512 bytes, at *sector*."""
        start = self._check(sector)
        if len(data) > SECTOR_SIZE:
            raise ExfatError(f"sector data is {len(data)} bytes, limit {SECTOR_SIZE}")
        self._data[start:start + SECTOR_SIZE] = bytes(data).ljust(SECTOR_SIZE, b"\0")


@dataclass
class BootSector:
    """The exFAT main boot sector."""

    jump_boot: bytes = b"\xEB\x76\x90"
    fs_name: bytes = FS_NAME
    partition_offset: int = 0
    volume_length: int = 0
    fat_offset: int = 0
    fat_length: int = 0
    cluster_heap_offset: int = 0
    cluster_count: int = 0
    root_dir_cluster: int = 0
    volume_serial: int = 0
    fs_revision: int = 0
    volume_flags: int = 0
    bytes_per_sector_shift: int = 0
    sectors_per_cluster_shift: int = 0
    number_of_fats: int = 0
    drive_select: int = 0
    percent_in_use: int = 0
    boot_signature: int = BOOT_SIGNATURE

    def pack(self) -> bytes:
        """Serialise to the 512-byte on-disk layout."""
        return _BOOT_FORMAT.pack(
            self.jump_boot,
            self.fs_name,
            self.partition_offset,
            self.volume_length,
            self.fat_offset,
            self.fat_length,
            self.cluster_heap_offset,
            self.cluster_count,
            self.root_dir_cluster,
            self.volume_serial,
            self.fs_revision,
            self.volume_flags,
            self.bytes_per_sector_shift,
            self.sectors_per_cluster_shift,
            self.number_of_fats,
            self.drive_select,
            self.percent_in_use,
            self.boot_signature,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "BootSector":
        """Parse the first 512 bytes of *data*."""
        if len(data) < _BOOT_FORMAT.size:
            raise ExfatError("boot sector is shorter than 512 bytes")
        return cls(*_BOOT_FORMAT.unpack_from(data))


def boot_checksum(data: bytes) -> int:
    """Boot region checksum, skipping the volume-flags and percent-in-use bytes."""
    checksum = 0
    for i, byte in enumerate(data):
        if i in _CHECKSUM_SKIP:
            continue
        checksum = ((((checksum << 31) | (checksum >> 1)) & _UINT32_MASK) + byte) & _UINT32_MASK
    return checksum


def format_volume(disk: RamDisk, total_sectors: int) -> BootSector:
    """Write a fresh exFAT layout of *total_sectors* sectors to *disk*."""
    if total_sectors > disk.sector_count:
        raise ExfatError(f"volume of {total_sectors} sectors exceeds disk of {disk.sector_count}")

    boot = BootSector(
        volume_length=total_sectors,
        bytes_per_sector_shift=9,
        sectors_per_cluster_shift=3,
        fat_offset=24,
        number_of_fats=1,
        root_dir_cluster=2,
        volume_serial=0x12345678,
        fs_revision=0x0100,
        volume_flags=0,
        drive_select=0x80,
        percent_in_use=0,
    )
    bytes_per_sector = 1 << boot.bytes_per_sector_shift
    sectors_per_cluster = 1 << boot.sectors_per_cluster_shift

    if total_sectors <= boot.fat_offset:
        raise ExfatError("volume too small for the boot region")
    max_clusters = (total_sectors - boot.fat_offset) // sectors_per_cluster
    boot.fat_length = (max_clusters * 4 + bytes_per_sector - 1) // bytes_per_sector
    boot.cluster_heap_offset = boot.fat_offset + boot.fat_length * boot.number_of_fats
    boot.cluster_count = max(total_sectors - boot.cluster_heap_offset, 0) // sectors_per_cluster
    if boot.cluster_count < 1:
        raise ExfatError("volume too small for a cluster heap")

    disk.write_sector(0, boot.pack())

    fat = struct.pack("<III", MEDIA_DESCRIPTOR, END_OF_CHAIN, END_OF_CHAIN)
    disk.write_sector(boot.fat_offset, fat)

    label = bytearray(ENTRY_SIZE)
    label[0] = EntryType.VOLUME_LABEL
    label[1] = 6
    label[2:14] = "EXFAT ".encode("utf-16-le")

    bitmap = bytearray(ENTRY_SIZE)
    bitmap[0] = EntryType.ALLOCATION
    bitmap[1] = 0
    struct.pack_into("<IQ", bitmap, 20, 3, (boot.cluster_count + 7) // 8)

    root_sector = boot.cluster_heap_offset + (boot.root_dir_cluster - 2) * sectors_per_cluster
    disk.write_sector(root_sector, bytes(label + bitmap))
    return boot


@dataclass
class ExfatVolume:
    """A mounted exFAT volume and its derived geometry."""

    disk: RamDisk
    boot_sector: BootSector
    bytes_per_sector: int
    sectors_per_cluster: int
    bytes_per_cluster: int
    fat_start_sector: int
    cluster_heap_start_sector: int
    root_dir_cluster: int

    @classmethod
    def mount(cls, disk: RamDisk) -> "ExfatVolume":
        """Read and check the boot sector of *disk*."""
        boot = BootSector.unpack(disk.read_sector(0))
        if boot.boot_signature != BOOT_SIGNATURE:
            raise ExfatError(f"invalid boot signature: {boot.boot_signature:#x}")
        if boot.fs_name != FS_NAME:
            raise ExfatError("not an exFAT filesystem")
        bytes_per_sector = 1 << boot.bytes_per_sector_shift
        sectors_per_cluster = 1 << boot.sectors_per_cluster_shift
        return cls(
            disk=disk,
            boot_sector=boot,
            bytes_per_sector=bytes_per_sector,
            sectors_per_cluster=sectors_per_cluster,
            bytes_per_cluster=bytes_per_sector * sectors_per_cluster,
            fat_start_sector=boot.fat_offset,
            cluster_heap_start_sector=boot.cluster_heap_offset,
            root_dir_cluster=boot.root_dir_cluster,
        )

    def _in_range(self, cluster: int) -> bool:
        return 2 <= cluster < self.boot_sector.cluster_count + 2

    def _first_sector(self, cluster: int) -> int:
        if not self._in_range(cluster):
            raise ExfatError(f"cluster {cluster} out of range")
        return self.cluster_heap_start_sector + (cluster - 2) * self.sectors_per_cluster

    def read_cluster(self, cluster: int) -> bytes:
        """Return the contents of *cluster*."""
        first = self._first_sector(cluster)
        return b"".join(
            self.disk.read_sector(first + i) for i in range(self.sectors_per_cluster)
        )

    def write_cluster(self, cluster: int, data: bytes) -> None:
        """Store *data*, zero-padded to a whole cluster, in *cluster*."""
        first = self._first_sector(cluster)
        if len(data) > self.bytes_per_cluster:
            raise ExfatError(f"cluster data is {len(data)} bytes, limit {self.bytes_per_cluster}")
        padded = bytes(data).ljust(self.bytes_per_cluster, b"\0")
        for i in range(self.sectors_per_cluster):
            start = i * self.bytes_per_sector
            self.disk.write_sector(first + i, padded[start:start + self.bytes_per_sector])

    def next_cluster(self, cluster: int) -> int:
        """FAT entry for *cluster*; ``END_OF_CHAIN`` when out of range or unreadable."""
        if not self._in_range(cluster):
            return END_OF_CHAIN
        offset = cluster * 4
        sector = self.fat_start_sector + offset // self.bytes_per_sector
        try:
            data = self.disk.read_sector(sector)
        except ExfatError:
            return END_OF_CHAIN
        (value,) = struct.unpack_from("<I", data, offset % self.bytes_per_sector)
        return value

    def list_root(self) -> list[tuple[int, int, str]]:
        """``(index, type code, description)`` for each root entry before end-of-directory."""
        data = self.read_cluster(self.root_dir_cluster)
        listing: list[tuple[int, int, str]] = []
        for index, start in enumerate(range(0, len(data) - ENTRY_SIZE + 1, ENTRY_SIZE)):
            entry_type = data[start]
            if entry_type == EntryType.EOD:
                break
            listing.append((index, entry_type, _ENTRY_DESCRIPTIONS.get(entry_type, "Unknown")))
        return listing