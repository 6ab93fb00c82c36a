"""Simple line-oriented sinks: append JSON lines to a file or write them to a pipe."""

from __future__ import annotations

import logging
import os
from typing import IO

log = logging.getLogger(__name__)


class FileOutput:
    """Append each JSON document as one line to a file and flush it at once.

    ``target`` is either a path, which this object opens in append mode and
    owns, or an already open text stream, which the caller keeps owning.
    """

    def __init__(self, target: str | os.PathLike[str] | IO[str]) -> None:
        if isinstance(target, (str, os.PathLike)):
            self._stream: IO[str] = open(target, "a", encoding="utf-8")
            self._owned = True
        else:
            self._stream = target
            self._owned = False

    def write(self, json_string: str) -> bool:
        """Write one document followed by a newline; always reports success."""
        self._stream.write(f"{json_string}\n")
        self._stream.flush()
        return True

    def close(self) -> None:
        """Close the file if this object opened it."""
        if self._owned and not self._stream.closed:
            self._stream.close()

    def __enter__(self) -> FileOutput:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class PipeOutput:
    """Write JSON documents, one per line, to a named pipe or any open descriptor.

    The descriptor belongs to the caller. ``writes`` counts the documents
    written in full.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd
        self.writes = 0

    def write(self, json_string: str) -> bool:
        """Write one document and a newline; log and return False on failure."""
        try:
            os.write(self.fd, json_string.encode("utf-8"))
            os.write(self.fd, b"\n")
        except OSError as exc:
            log.warning("Could not write pipe. Error: %s", exc.strerror or exc)
            return False
        self.writes += 1
        return True