from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import ExecAllocationError
from .record import ExecCommand

logger = logging.getLogger(__name__)


def parse_number(token: str) -> int:
    """Parse a base-10 command number; -1 when `token` is not one."""
    try:
        return int(token, 10)
    except (TypeError, ValueError):
        return -1


class ExecRegistry:
    """Ordered collection of executed commands, keyed by command number.

    Insertion order is kept (dict order) and drives both number allocation
    and lookup. `unhook` releases a still-registered process handle and
    `cancel_timer` a pending purge timer when a record is removed.
    """

    def __init__(
        self,
        *,
        unhook: Optional[Callable[[Any], None]] = None,
        cancel_timer: Optional[Callable[[Any], None]] = None,
    ) -> None:
        self._cmds: Dict[int, ExecCommand] = {}
        self._unhook = unhook
        self._cancel_timer = cancel_timer or (lambda timer: timer.cancel())
        self.on_remove: Optional[Callable[[ExecCommand], None]] = None

    def __len__(self) -> int:
        return len(self._cmds)

    def __iter__(self) -> Iterator[ExecCommand]:
        return iter(list(self._cmds.values()))

    def __contains__(self, record: object) -> bool:
        if not isinstance(record, ExecCommand):
            return False
        return self._cmds.get(record.number) is record

    @property
    def count(self) -> int:
        return len(self._cmds)

    @property
    def first(self) -> Optional[ExecCommand]:
        return next(iter(self._cmds.values()), None)

    @property
    def last(self) -> Optional[ExecCommand]:
        return next(reversed(self._cmds.values()), None) if self._cmds else None

    def get(self, number: int) -> Optional[ExecCommand]:
        return self._cmds.get(number)

    def _next_number(self) -> int:
        """First gap after a record (in list order), else last number + 1."""
        prev: Optional[ExecCommand] = None
        for record in self._cmds.values():
            if prev is not None and record.number > prev.number + 1:
                candidate = prev.number + 1
                if candidate not in self._cmds:
                    return candidate
            prev = record
        if prev is None:
            return 0
        candidate = prev.number + 1
        if candidate in self._cmds:
            candidate = max(self._cmds) + 1
        return candidate

    def add(self, command: str, **options: Any) -> ExecCommand:
        number = self._next_number()
        try:
            record = ExecCommand(number=number, command=command, **options)
        except MemoryError as exc:
            logger.error("Unable to allocate command %r", command)
            raise ExecAllocationError(command) from exc
        self._cmds[number] = record
        logger.debug("Added command %d: %r", number, command)
        return record

    def search_by_id(self, ident: str) -> Optional[ExecCommand]:
        """Find a command by number or name.

        Each record is checked for a number match, then a name match, in
        insertion order; the first record matching either wins.
        """
        number = parse_number(ident)
        for record in self._cmds.values():
            if number >= 0 and record.number == number:
                return record
            if record.name and record.name == ident:
                return record
        return None

    def remove(self, record: ExecCommand) -> None:
        if self._cmds.get(record.number) is not record:
            return
        del self._cmds[record.number]

        if record.purge_timer is not None:
            timer, record.purge_timer = record.purge_timer, None
            self._cancel_timer(timer)
        if record.hook is not None:
            hook, record.hook = record.hook, None
            if self._unhook:
                self._unhook(hook)
        record.out.clear()
        record.err.clear()
        record.removed = True
        logger.debug("Removed command %d", record.number)
        if self.on_remove:
            self.on_remove(record)

    def remove_all(self) -> None:
        while self._cmds:
            self.remove(self.first)

    def snapshot(self) -> List[Dict[str, Any]]:
        return [record.to_payload(include_output=True) for record in self._cmds.values()]

    def print_log(self) -> None:
        """Dump every record at DEBUG level."""
        for record in self._cmds.values():
            logger.debug("")
            logger.debug("[exec command %d]", record.number)
            for key, value in record.to_payload(include_output=True).items():
                logger.debug("  %s%s: %r", key, " " + "." * max(0, 22 - len(key)), value)
