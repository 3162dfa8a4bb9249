import os
import re
import psutil
import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple

log = logging.getLogger(__name__)

ProcessSet = FrozenSet[int]


@dataclass(frozen=True)
class ProcessRecord:
    """A structured snapshot of one OS process."""
    pid: int
    ppid: int
    name: str
    cmdline: Tuple[str, ...] = ()

    @property
    def command(self) -> str:
        return " ".join(self.cmdline) if self.cmdline else self.name


#* --- Process Enumeration ---
def snapshot_processes() -> List[ProcessRecord]:
    """
    Enumerates all visible processes into ProcessRecords.

    Processes that vanish or deny access while being read are skipped. If the
    enumeration itself fails, an empty list is returned.
    """
    records: List[ProcessRecord] = []
    try:
        for proc in psutil.process_iter(["pid", "ppid", "name", "cmdline"]):
            info = proc.info
            records.append(ProcessRecord(
                pid=info["pid"],
                ppid=info.get("ppid") or 0,
                name=info.get("name") or "",
                cmdline=tuple(info.get("cmdline") or ()),
            ))
    except psutil.Error as e:
        log.debug(f"Process enumeration failed: {e}")
        return []
    return records


def find_matching(records: Iterable[ProcessRecord], pattern: str, exclude: Iterable[int] = ()) -> ProcessSet:
    """Returns the pids whose command line (or name, if it has none) matches the pattern."""
    try:
        regex = re.compile(pattern)
    except re.error as e:
        log.error(f"Invalid process pattern {pattern!r}: {e}")
        return frozenset()
    excluded = set(exclude)
    return frozenset(
        r.pid for r in records
        if r.pid not in excluded and regex.search(r.command)
    )


def find_children(records: Iterable[ProcessRecord], parents: Iterable[int], exclude: Iterable[int] = ()) -> ProcessSet:
    """Returns the direct children of the given parent pids."""
    parent_set = set(parents)
    excluded = set(exclude)
    return frozenset(
        r.pid for r in records
        if r.ppid in parent_set and r.pid not in parent_set and r.pid not in excluded
    )


class ProcessRegistry:
    """
    Looks up the worker's process family on demand.

    Nothing is cached: every call takes a fresh snapshot, because earlier
    cleanup attempts can leave orphaned descendants behind.
    """

    def __init__(self, pattern: str, snapshot=snapshot_processes, own_pid: Optional[int] = None):
        self.pattern = pattern
        self.snapshot = snapshot
        self.own_pid = own_pid if own_pid is not None else os.getpid()

    def _records(self) -> List[ProcessRecord]:
        try:
            return list(self.snapshot())
        except (psutil.Error, OSError) as e:
            log.debug(f"Process lookup unavailable: {e}")
            return []

    def children(self) -> ProcessSet:
        """The direct children of whatever currently matches."""
        records = self._records()
        parents = find_matching(records, self.pattern, exclude=(self.own_pid,))
        return find_children(records, parents, exclude=(self.own_pid,))

    def worker_processes(self) -> ProcessSet:
        """The matched worker processes plus their direct children."""
        records = self._records()
        parents = find_matching(records, self.pattern, exclude=(self.own_pid,))
        return parents | find_children(records, parents, exclude=(self.own_pid,))

    def describe(self, pids: Iterable[int]) -> List[ProcessRecord]:
        """Returns the current records for the given pids, skipping those that are gone."""
        wanted = set(pids)
        return [r for r in self._records() if r.pid in wanted]
