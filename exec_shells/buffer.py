from __future__ import annotations

import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)


class OutputBuffer:
    """Append-only stdout/stderr capture for one command.

    Chunks are concatenated in arrival order; line boundaries are only
    recovered when the whole text is routed.
    """

    def __init__(self) -> None:
        self._data: Optional[bytearray] = None

    @property
    def size(self) -> int:
        return len(self._data) if self._data is not None else 0

    def __bool__(self) -> bool:
        return self.size > 0

    def append(self, chunk: Union[bytes, str]) -> None:
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8", errors="replace")
        try:
            if self._data is None:
                self._data = bytearray()
            self._data.extend(chunk)
        except MemoryError:
            # capture is best-effort: drop the chunk, keep what we have
            logger.warning("Dropping %d bytes of output: out of memory", len(chunk))

    def text(self) -> Optional[str]:
        if self._data is None:
            return None
        return self._data.decode("utf-8", errors="replace")

    def clear(self) -> None:
        self._data = None
