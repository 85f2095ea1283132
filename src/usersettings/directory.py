"""Directory-service user name lookup."""

import getpass
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol


class DirectoryLookup(Protocol):
    """Resolves an OS login name to the directory's canonical (display) name."""

    def lookup(self, raw_name: str) -> str | None:
        """Return the canonical name, or None when the directory has no such user.

        Directory failures propagate as exceptions.
        """
        ...


class StaticDirectory:
    """Directory backed by a fixed mapping of login name to canonical name."""

    def __init__(self, names: Mapping[str, str]) -> None:
        self._names = {k.lower(): v for k, v in names.items()}

    @staticmethod
    def from_json(path: str | Path) -> "StaticDirectory":
        """Load a ``{"login": "Canonical Name"}`` JSON object."""
        with open(path) as f:
            return StaticDirectory(json.load(f))

    def lookup(self, raw_name: str) -> str | None:
        return self._names.get(raw_name.lower())


def resolve_user_name(directory: DirectoryLookup | None, raw_name: str | None) -> str | None:
    """Canonical directory name for ``raw_name``; None for an empty or unknown name."""
    if not raw_name or directory is None:
        return None
    return directory.lookup(raw_name)


def env_or_directory_user_name(directory: DirectoryLookup | None) -> str:
    """Directory name of the OS user running this process, else the OS login name."""
    login = getpass.getuser()
    return resolve_user_name(directory, login) or login
