"""Helpers shared by the test modules."""

import json
from typing import Iterable, Optional, Tuple

Entry = Tuple[str, str, bool, Optional[str]]


def file_tree(entries: Iterable[Entry], library_state: str = "loaded") -> str:
    """Serialized file-metadata tree from (path, name, is_directory, uuid) tuples."""
    items = {}
    for path, name, is_directory, uuid in entries:
        item = {"path": path, "name": name, "isDirectory": is_directory, "status": "active"}
        if uuid:
            item["uuid"] = uuid
        items[path] = item
    return json.dumps({"state": {"items": items, "libraryState": library_state}, "version": 5})


def load_tree(raw: str) -> dict:
    return json.loads(raw)["state"]


DOC_ID = "0b6f3b8e-5d2a-4c4e-9a57-4a0f3c7d2e11"
IMG_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"


async def populate(flat_storage, object_storage) -> dict:
    """Fill storage with one document, one image, one wallpaper and two settings."""
    from ryos_backup.base import Blob

    await object_storage.put("documents", DOC_ID, {"name": "notes.md", "content": "# hello"})
    await object_storage.put("images", IMG_ID, {
        "name": "cat.png",
        "content": Blob(data=b"\x89PNG\r\n\x1a\n" + bytes(range(64)), type="image/png"),
    })
    await object_storage.put("custom_wallpapers", "wp-1", {"url": "x", "content": Blob(data=b"\x00\x01")})
    await flat_storage.set("ryos:theme", "macosx")
    await flat_storage.set("ryos:files", file_tree([
        ("/", "/", True, None),
        ("/Documents", "Documents", True, None),
        ("/Documents/notes.md", "notes.md", False, DOC_ID),
        ("/Images", "Images", True, None),
        ("/Images/cat.png", "cat.png", False, IMG_ID),
    ]))
    return {"documents": DOC_ID, "images": IMG_ID}
