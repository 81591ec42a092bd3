import os
import logging

from pathlib import Path
from typing import Dict, Iterator, Optional, List, Tuple

from .wal import WAL
from .sstable import MISSING, SSTable

logger = logging.getLogger(__name__)


class LSMEngine:
    def __init__(self, data_dir: str, memtable_limit: int = 2000):
        self.dir = Path(data_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.wal = WAL(self.dir / 'wal.log')
        # recover memtable from WAL
        self.memtable: Dict[str, Optional[str]] = self.wal.replay()
        self.memtable_limit = memtable_limit
        self.sstables: List[SSTable] = []
        for fp in sorted(self.dir.glob('sst_*.jsonl')):
            self.sstables.append(SSTable(fp))
        self._seq = self._last_seq()
        logger.info(
            "Opened LSM engine at %s (%d sstables, %d memtable entries)",
            self.dir, len(self.sstables), len(self.memtable),
        )

    def _last_seq(self) -> int:
        if not self.sstables:
            return 0
        return int(self.sstables[-1].data_path.stem.split("_")[1])

    def _next_path(self) -> Path:
        self._seq += 1
        return self.dir / f'sst_{self._seq:08d}.jsonl'

    def put(self, key: str, value: str):
        self.wal.append_put(key, value)
        self.memtable[key] = value
        if len(self.memtable) >= self.memtable_limit:
            self.flush()

    def delete(self, key: str):
        self.wal.append_del(key)
        self.memtable[key] = None
        if len(self.memtable) >= self.memtable_limit:
            self.flush()

    def get(self, key: str) -> Optional[str]:
        if key in self.memtable:
            return self.memtable[key]
        # search newest to oldest SSTable
        for sst in reversed(self.sstables):
            v = sst.get(key)
            if v is not MISSING:
                return v
        return None

    def scan(self, prefix: str = "") -> Iterator[Tuple[str, str]]:
        """Live (key, value) pairs whose key starts with prefix, in key order."""
        merged: Dict[str, Optional[str]] = {}
        # oldest first so newer writes and tombstones win
        for sst in self.sstables:
            merged.update(sst.items(prefix))
        merged.update((k, v) for k, v in self.memtable.items() if k.startswith(prefix))
        for k in sorted(merged):
            v = merged[k]
            if v is not None:
                yield k, v

    def flush(self):
        if not self.memtable:
            return
        sst = SSTable.write(self._next_path(), self.memtable.items())
        self.sstables.append(sst)
        logger.info("Flushed %d memtable entries to %s", len(self.memtable), sst.data_path.name)
        # reset WAL and clear memtable
        self.wal.reset()
        self.memtable.clear()

    def compact(self):
        """Merge all SSTables newest->oldest, discard tombstones and duplicates."""
        if not self.sstables:
            return
        merged: Dict[str, Optional[str]] = {}
        for sst in self.sstables:
            merged.update(sst.items())
        # drop tombstones
        merged = {k: v for k, v in merged.items() if v is not None}
        new_sst = SSTable.write(self._next_path(), merged.items())
        for sst in self.sstables:
            for path in (sst.data_path, sst.index_path):
                try:
                    os.remove(path)
                except FileNotFoundError:
                    pass
        logger.info("Compacted %d sstables into %s", len(self.sstables), new_sst.data_path.name)
        self.sstables = [new_sst]

    def close(self):
        self.flush()
        self.wal.close()
