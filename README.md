# osax

A metadata-first object filesystem that runs entirely in memory. Objects are the
truth; paths are only views onto them.

The package has these layers:

- `osax.exfat`: a RAM-backed disk of 512-byte sectors (`RamDisk`), the exFAT
  boot sector (`BootSector`, `boot_checksum`), `format_volume` to lay out a
  fresh volume, and `ExfatVolume.mount` for cluster reads, writes, FAT lookups
  (`next_cluster`) and a root-directory listing (`list_root`).
- `osax.direntry`: directory entry sets (`build_entry_set`,
  `entry_set_checksum`, `name_hash`), FAT cluster allocation (`alloc_cluster`,
  `write_fat_entry`, `find_free_entry`), and `create` / `mkdir` for new entries
  in the root directory.
- `osax.fileops`: `open_file` returns an `ExfatFile` with `read`, `write`,
  `seek` and `close`; it is also a context manager. Writing past the end grows
  the cluster chain and records the new size in the directory
  (`update_file_size`).
- `osax.objects`: object identifiers (`ObjectId`, with `to_hex` / `from_hex`),
  the `ObjectType` enum and `type_name`, `crc32`, content-based type guessing
  (`infer_type`), and CRC-32 checked `CoreMetadata`.
- `osax.index`: the in-memory `ObjectIndex` of `IndexEntry` records, with
  sequential identifiers, names, views, extensions, lookups by name and
  fixed-size on-disk records (`IndexEntry.pack` / `unpack`).
- `osax.store`: how object data, view links and the index are kept as flat
  files on the volume (`data_filename`, `link_filename`, `write_object_data`,
  `read_object_data`, `write_link`, `resolve_path`, `save_index`, `load_index`).
- `osax.metafs`: the `MetaFS` facade, with `ViewDefinition` and `ViewType`.
- `osax.views`: shell-facing helpers: `view_exists`, `list_view` (returns
  `ViewEntry` items), `create_view`, `path_view_name`, `normalize_path`,
  `resolve_shell_path`, `path_is_valid` and `default_object_name`.
- `osax.kstring`: a small printf-style formatter (`ksprintf`), the serial
  output format (`serial_format`) and a `SerialConsole` that writes it to any
  text stream, plus `parse_hex_id` and `bounded_copy`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from osax.exfat import RamDisk, format_volume, ExfatVolume
from osax.metafs import MetaFS
from osax.objects import ObjectType

disk = RamDisk(10)
format_volume(disk, 10 * 1024 * 1024 // 512)
volume = ExfatVolume.mount(disk)

fs = MetaFS(volume, 1024)
fs.format()   # the kernel, data, boot, config, apps, documents and media views
fs.mount()    # False here: there is no saved index yet

object_id = fs.create_object(ObjectType.DOCUMENT)
fs.write_data(object_id, b"hello")
fs.link("documents", "note", object_id)

assert fs.resolve_path("/documents/note") == object_id
assert fs.read_data(object_id, 5) == b"hello"

fs.sync()
```

Object data lives in root-directory files named `data.<16 hex digits>`, view
links in files named `views.<view>.<name>` holding the object's 16 hex digits,
and the index in `.kernel.objects.db`. After `sync()`, a fresh `MetaFS` on the
same volume restores its index with `mount()`.

Paths for the shell helpers are flat: `normalize_path` resolves `.` and `..`
and accepts `/`, `/<view>` and `/<view>/<name>`; anything deeper raises
`ValueError`.

Errors are raised as exceptions: `ExfatError` for volume and disk failures and
`MetaFSError` for object and view failures.

## What it does not do

- The disk exists only in memory; nothing is written to a file on the host.
- Files and directories live in the single root-directory cluster. `create`
  refuses names with a `/`, `mkdir` makes an entry but nothing can be placed
  inside it, and there is no way to delete or rename a file.
- The index file records only how many views exist, not their names or
  filters. After `mount()`, `MetaFS.views` holds that many blank
  `ViewDefinition` entries.
- Object tags, timestamps and sizes are not kept: core metadata always reports
  a size and times of zero.
- There is no command-line program or interactive shell; the package is used
  as a library.