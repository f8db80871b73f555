"""Filesystem abstraction used by filesystem-backed migrations."""

from __future__ import annotations

import abc
from pathlib import Path
from typing import BinaryIO, List, Union

PathLike = Union[str, Path]


class Filesystem(abc.ABC):
    """Operations on files that migrations need; errors are raised as OSError."""

    @abc.abstractmethod
    def ensure_dir(self, path: PathLike) -> None:
        """Ensure a directory exists, creating missing parents."""

    @abc.abstractmethod
    def list_dir(self, path: PathLike) -> List[Path]:
        """All paths in a directory."""

    @abc.abstractmethod
    def write(self, path: PathLike) -> BinaryIO:
        """Open a file for binary writing, creating or truncating it."""

    @abc.abstractmethod
    def read(self, path: PathLike) -> BinaryIO:
        """Open a file for binary reading."""

    @abc.abstractmethod
    def delete(self, path: PathLike) -> None:
        """Delete a file."""


class OsFilesystem(Filesystem):
    """Filesystem backed by the operating system."""

    def __repr__(self) -> str:
        return "OsFilesystem()"

    def ensure_dir(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def list_dir(self, path: PathLike) -> List[Path]:
        return list(Path(path).iterdir())

    def write(self, path: PathLike) -> BinaryIO:
        return open(path, "wb")

    def read(self, path: PathLike) -> BinaryIO:
        return open(path, "rb")

    def delete(self, path: PathLike) -> None:
        Path(path).unlink()