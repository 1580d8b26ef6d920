"""Key-set differencing between local documents and remote object keys.

A local file maps to the remote key given by its path relative to the
documents root, with separators normalized to "/". Presence of the key is
the only comparison made; content is never compared.

Two local paths that normalize to the same key are both planned for upload.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Iterable


def document_key(path: Path, root: Path) -> str:
    """Remote key for a local file: relative path with "/" separators."""
    return str(path.relative_to(root)).replace("\\", "/")


@dataclass(frozen=True)
class LocalFile:
    """A file under the documents root."""

    path: Path
    key: str

    @classmethod
    def from_path(cls, path: Path, root: Path) -> "LocalFile":
        return cls(path=path, key=document_key(path, root))


def plan_uploads(
    local_files: Iterable[LocalFile],
    remote_keys: AbstractSet[str],
) -> list[LocalFile]:
    """Local files whose key is absent remotely, in input order."""
    return [f for f in local_files if f.key not in remote_keys]


def partition(
    local_files: Iterable[LocalFile],
    remote_keys: AbstractSet[str],
) -> tuple[list[LocalFile], list[LocalFile]]:
    """Split local files into (to_upload, already_present)."""
    to_upload: list[LocalFile] = []
    present: list[LocalFile] = []
    for local_file in local_files:
        if local_file.key in remote_keys:
            present.append(local_file)
        else:
            to_upload.append(local_file)
    return to_upload, present
