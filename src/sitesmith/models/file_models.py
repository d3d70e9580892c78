"""File set models and path normalisation."""

import base64
import binascii
from typing import Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field

from sitesmith.exceptions import InputValidationError

FileEncoding = Literal["utf8", "base64"]


def normalize_path(path: str) -> str:
    """Unify slashes, strip leading slashes and surrounding whitespace."""
    return path.replace("\\", "/").strip().lstrip("/").strip()


class FileEntry(BaseModel):
    """A single file destined for the repository or the build directory."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    encoding: FileEncoding = "utf8"

    def raw_bytes(self) -> bytes:
        """Return the decoded file content.

        Raises:
            InputValidationError: If a base64 entry does not decode.
        """
        if self.encoding == "base64":
            try:
                return base64.b64decode(self.content, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise InputValidationError(
                    f"Invalid base64 content for '{self.path}': {exc}"
                ) from exc
        return self.content.encode("utf-8")

    def base64_content(self) -> str:
        """Return the content encoded as base64, as the Git blob API expects."""
        if self.encoding == "base64":
            return self.content
        return base64.b64encode(self.content.encode("utf-8")).decode("ascii")


class FileSet(BaseModel):
    """Ordered collection of files produced by one generation attempt."""

    model_config = ConfigDict(frozen=True)

    files: list[FileEntry] = Field(default_factory=list)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[str, str]],
        encoding: FileEncoding = "utf8",
    ) -> "FileSet":
        return cls(
            files=[FileEntry(path=path, content=content, encoding=encoding) for path, content in pairs]
        )

    def paths(self) -> list[str]:
        return [entry.path for entry in self.files]

    def get(self, path: str) -> FileEntry | None:
        """Return the last entry whose normalised path matches, if any."""
        wanted = normalize_path(path)
        match = None
        for entry in self.files:
            if normalize_path(entry.path) == wanted:
                match = entry
        return match

    def normalized(self) -> "FileSet":
        """Return a copy with normalised, unique paths.

        Entries whose path is empty after normalisation are dropped. When a
        path appears more than once the last content wins, keeping the
        position of the first occurrence.

        Raises:
            InputValidationError: If a path contains a '..' segment.
        """
        deduped: dict[str, FileEntry] = {}
        for entry in self.files:
            path = normalize_path(entry.path)
            if not path:
                continue
            if ".." in path.split("/"):
                raise InputValidationError(f"Path escapes repository root: '{entry.path}'")
            deduped[path] = FileEntry(path=path, content=entry.content, encoding=entry.encoding)
        return FileSet(files=list(deduped.values()))

    def __len__(self) -> int:
        return len(self.files)


def normalize_file_set(file_set: FileSet) -> FileSet:
    """Normalise ``file_set`` and reject it when no valid entry remains.

    Raises:
        InputValidationError: If the normalised set is empty or a path is unsafe.
    """
    normalized = file_set.normalized()
    if not normalized.files:
        raise InputValidationError("File set contains no valid files")
    return normalized
