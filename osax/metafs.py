"""The metadata-first filesystem: views, objects and their persistence."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from . import store
from .exfat import ExfatError, ExfatVolume
from .index import DEFAULT_MAX_OBJECTS, ObjectIndex
from .objects import MetaFSError, ObjectId, ObjectType

MAX_VIEWS = 64

SYSTEM_VIEW_KERNEL = "kernel"
SYSTEM_VIEW_DATA = "data"
SYSTEM_VIEW_BOOT = "boot"
SYSTEM_VIEW_CONFIG = "config"


class ViewType(IntEnum):
    """How a view's contents are chosen."""

    STATIC_APPS = 0
    STATIC_DOCUMENTS = 1
    STATIC_MEDIA = 2


@dataclass
class ViewDefinition:
    """A named view that shows objects of one type."""

    name: str = ""
    type: ViewType = ViewType.STATIC_APPS
    filter_type: ObjectType = ObjectType.UNKNOWN


_DEFAULT_VIEWS = (
    (SYSTEM_VIEW_KERNEL, ViewType.STATIC_APPS, ObjectType.DATA),
    (SYSTEM_VIEW_DATA, ViewType.STATIC_DOCUMENTS, ObjectType.DATA),
    (SYSTEM_VIEW_BOOT, ViewType.STATIC_APPS, ObjectType.EXECUTABLE),
    (SYSTEM_VIEW_CONFIG, ViewType.STATIC_DOCUMENTS, ObjectType.DATA),
    ("apps", ViewType.STATIC_APPS, ObjectType.EXECUTABLE),
    ("documents", ViewType.STATIC_DOCUMENTS, ObjectType.DOCUMENT),
    ("media", ViewType.STATIC_MEDIA, ObjectType.IMAGE),
)


class MetaFS:
    """Objects, views and their index kept on an exFAT volume."""

    def __init__(self, volume: ExfatVolume, max_objects: int = DEFAULT_MAX_OBJECTS) -> None:
        self.volume = volume
        self.index = ObjectIndex(max_objects)
        self.views: list[ViewDefinition] = []

    def format(self) -> None:
        """Add the four system views and three user views."""
        self.views.extend(
            ViewDefinition(name, view_type, filter_type)
            for name, view_type, filter_type in _DEFAULT_VIEWS
        )

    def _create_system_object(self, name: str, extension: str, view: str) -> ObjectId:
        object_id = self.index.create_object(ObjectType.DATA)
        self.index.set_name(object_id, name)
        self.index.set_extension(object_id, extension)
        self.index.set_view(object_id, view)
        self.write_data(object_id, b"")
        return object_id

    def import_system_files(self) -> tuple[ObjectId, ObjectId]:
        """Create the ``objects.db`` and ``system.state`` objects in the kernel view."""
        objects_db = self._create_system_object("objects", "db", SYSTEM_VIEW_KERNEL)
        system_state = self._create_system_object("system", "state", SYSTEM_VIEW_KERNEL)
        return objects_db, system_state

    def create_object(self, obj_type: int) -> ObjectId:
        """Add a new object of *obj_type* to the index."""
        return self.index.create_object(obj_type)

    def write_data(self, object_id: ObjectId, data: bytes) -> int:
        """Store the object's contents; return the number of bytes written."""
        return store.write_object_data(self.volume, object_id, data)

    def read_data(self, object_id: ObjectId, size: int) -> bytes:
        """Read up to *size* bytes of the object's contents."""
        return store.read_object_data(self.volume, object_id, size)

    def link(self, view_name: str, name: str, object_id: ObjectId) -> None:
        """Make *object_id* reachable as ``/<view_name>/<name>``."""
        store.write_link(self.volume, view_name, name, object_id)

    def resolve_path(self, path: str) -> ObjectId:
        """Resolve ``/<view>/<name>`` to an object id."""
        return store.resolve_path(self.volume, path)

    def save_index(self) -> None:
        """Write the index to the volume."""
        store.save_index(self.volume, self.index, len(self.views))

    def load_index(self) -> None:
        """Read the index from the volume; the view list takes the recorded count."""
        num_views = store.load_index(self.volume, self.index)
        if num_views <= len(self.views):
            del self.views[num_views:]
        else:
            self.views.extend(ViewDefinition() for _ in range(num_views - len(self.views)))

    def mount(self) -> bool:
        """Load an existing index; return False when starting fresh."""
        try:
            self.load_index()
        except (MetaFSError, ExfatError):
            return False
        return True

    def sync(self) -> None:
        """Persist the index."""
        self.save_index()