"""
File store infrastructure for bbserver.

Provides a directory-backed key/value store with:
- One file per key, keys percent-encoded to distinct file names
- Atomic writes (write to temp, then rename)
- A read-only mode that keeps reads working but drops writes
- Automatic directory creation on first write
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import Optional
from urllib.parse import quote
import logging

logger = logging.getLogger(__name__)


class FileStore:
    """
    Key/value persistence in a directory, one file per key.

    Example:
        store = FileStore(Path("~/.bbserver/cache/repo/git.example.com/PRJ/repo"))
        store.write("v1.0.0", '{"name": "acme/repo"}')
        data = store.read("v1.0.0")
    """

    def __init__(self, directory: Path, read_only: bool = False):
        """
        Initialize FileStore.

        Args:
            directory: Directory holding the entries
            read_only: Ignore writes
        """
        self.directory = Path(directory).expanduser()
        self.read_only = read_only
        self._lock = threading.Lock()

    @staticmethod
    def encode_key(key: str) -> str:
        """Map a key to the file name it is stored under; distinct keys never share one."""
        name = quote(key, safe='')
        # "." and ".." are not usable names, and dotfiles are temp files
        if name.startswith('.'):
            name = '%2E' + name[1:]
        return name

    def path_for(self, key: str) -> Path:
        return self.directory / self.encode_key(key)

    def _write_atomic(self, path: Path, contents: str) -> None:
        """Write contents atomically using temp file and rename."""
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(contents)
            os.replace(temp_path, path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def read(self, key: str) -> Optional[str]:
        """
        Read one entry.

        Args:
            key: Key to retrieve

        Returns:
            Stored contents, or None if absent or unreadable
        """
        path = self.path_for(key)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Error reading cache entry {path}: {e}")
            return None

    def write(self, key: str, contents: str) -> bool:
        """
        Write one entry.

        Args:
            key: Key to set
            contents: Text to store

        Returns:
            True if the entry was written, False in read-only mode
        """
        if self.read_only:
            logger.debug(f"Cache is read-only, not writing {key}")
            return False

        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._write_atomic(self.path_for(key), contents)
        return True
