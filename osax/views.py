"""Shell-facing view operations: listing, creating and path handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from .direntry import mkdir
from .exfat import ExfatError
from .metafs import MAX_VIEWS, MetaFS, ViewDefinition, ViewType
from .objects import NULL_ID, MetaFSError, ObjectId, ObjectType

log = logging.getLogger(__name__)

VIEW_NAME_LIMIT = 64
ENTRY_NAME_LIMIT = 255
MAX_LIST_ENTRIES = 128
MAX_COMPONENTS = 8
COMPONENT_LIMIT = 63
PATH_LIMIT = 255
MAX_PATH_DEPTH = 2


@dataclass
class ViewEntry:
    """One line of a view listing."""

    name: str
    id: ObjectId = field(default=NULL_ID)
    type: ObjectType | int = ObjectType.UNKNOWN
    size: int = 0
    created: int = 0


def _strip_root(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def _first_component(path: str) -> str:
    return path.split("/", 1)[0]


def _find_view(fs: MetaFS, name: str) -> ViewDefinition | None:
    return next((view for view in fs.views if view.name == name), None)


def view_exists(fs: MetaFS, path: str) -> bool:
    """True for the root and for any path whose first component names a view."""
    if fs is None or path is None:
        return False
    if path == "/":
        return True
    rest = _strip_root(path)
    if not rest:
        return True
    name = _first_component(rest)
    if not name or len(name) >= VIEW_NAME_LIMIT:
        return False
    return _find_view(fs, name) is not None


def default_object_name(object_id: ObjectId) -> str:
    """The listing name of an object: ``obj_`` and its sixteen hex digits."""
    return "obj_" + object_id.to_hex()


def list_view(fs: MetaFS, path: str) -> list[ViewEntry]:
    """List the views at the root, or the objects a view's filter selects."""
    if fs is None or path is None:
        raise MetaFSError("no filesystem or path given")
    rest = _strip_root(path)
    if not rest:
        return [ViewEntry(name=view.name[:ENTRY_NAME_LIMIT]) for view in fs.views]

    name = _first_component(rest)
    if len(name) >= VIEW_NAME_LIMIT:
        raise MetaFSError("view name too long")
    view = _find_view(fs, name)
    if view is None:
        raise MetaFSError(f"view {name!r} not found")

    entries: list[ViewEntry] = []
    for index_entry in fs.index:
        if len(entries) >= MAX_LIST_ENTRIES:
            break
        core = fs.index.core_metadata(index_entry.id)
        if view.filter_type == ObjectType.UNKNOWN or core.type == view.filter_type:
            entries.append(
                ViewEntry(
                    name=default_object_name(index_entry.id)[:ENTRY_NAME_LIMIT],
                    id=index_entry.id,
                    type=core.type,
                    size=core.size,
                    created=core.created,
                )
            )
    return entries


def create_view(fs: MetaFS, name: str, filter_type: int) -> ViewDefinition:
    """Add a view backed by a directory on the volume and persist the index."""
    if fs is None or name is None:
        raise MetaFSError("no filesystem or view name given")
    if _find_view(fs, name) is not None:
        raise MetaFSError(f"view {name!r} already exists")
    if len(fs.views) >= MAX_VIEWS:
        raise MetaFSError("maximum views reached")
    try:
        mkdir(fs.volume, f"/views/{name}")
    except ExfatError as exc:
        raise MetaFSError(f"cannot create directory for view {name!r}: {exc}") from exc

    try:
        kind: ObjectType | int = ObjectType(int(filter_type))
    except ValueError:
        kind = int(filter_type)
    view = ViewDefinition(
        name=name[:VIEW_NAME_LIMIT - 1],
        type=ViewType.STATIC_DOCUMENTS,
        filter_type=kind,
    )
    fs.views.append(view)
    try:
        fs.sync()
    except MetaFSError as exc:
        log.warning("could not persist index after creating view %r: %s", name, exc)
    return view


def path_view_name(path: str) -> str:
    """The view named by the first component of *path*; empty for the root."""
    if path is None:
        raise ValueError("no path given")
    return _first_component(_strip_root(path))


def _tokens(path: str) -> Iterator[str]:
    for part in path.split("/"):
        for start in range(0, len(part), COMPONENT_LIMIT):
            yield part[start:start + COMPONENT_LIMIT]


def normalize_path(current_dir: str, path: str) -> str:
    """Resolve ``.`` and ``..`` against *current_dir*; views allow two levels at most."""
    if path is None:
        raise ValueError("no path given")
    if path.startswith("/"):
        full = path
    elif current_dir == "/":
        full = "/" + path
    else:
        full = f"{current_dir}/{path}"

    stack: list[str] = []
    for token in _tokens(_strip_root(full)):
        if len(stack) >= MAX_COMPONENTS:
            break
        if token == ".":
            continue
        if token == "..":
            if stack:
                stack.pop()
            continue
        stack.append(token)

    if not stack:
        return "/"
    if len(stack) > MAX_PATH_DEPTH:
        raise ValueError(f"path {path!r} is nested deeper than a view")
    return ("/" + "/".join(stack))[:PATH_LIMIT]


def resolve_shell_path(fs: MetaFS, current_dir: str, path: str) -> ObjectId:
    """Normalise *path* relative to *current_dir* and resolve it to an object."""
    if fs is None or path is None:
        raise MetaFSError("no filesystem or path given")
    try:
        normalized = normalize_path(current_dir, path)
    except ValueError as exc:
        raise MetaFSError(str(exc)) from exc
    return fs.resolve_path(normalized)


def path_is_valid(current_dir: str, path: str) -> bool:
    """True when *path* normalises to the root, a view or an object in a view."""
    try:
        normalize_path(current_dir, path)
    except ValueError:
        return False
    return True