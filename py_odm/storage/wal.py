import os
import json

from pathlib import Path
from typing import Optional, Dict


class WAL:
    def __init__(self, path: Path):
        self.path = path
        self.f = open(self.path, 'a+', encoding="utf-8")

    def _append(self, rec: dict):
        self.f.write(json.dumps(rec) + "\n")
        self.f.flush()
        os.fsync(self.f.fileno())

    def append_put(self, key: str, value: Optional[str]):
        self._append({"op": "put", "key": key, "value": value})

    def append_del(self, key: str):
        self._append({"op": "del", "key": key})

    def replay(self) -> Dict[str, Optional[str]]:
        """Rebuild the memtable; deleted keys map to None (tombstones)."""
        self.f.seek(0)
        mem: Dict[str, Optional[str]] = {}
        for line in self.f:
            if not line.strip():
                continue
            rec = json.loads(line)
            if rec["op"] == "put":
                mem[rec["key"]] = rec.get("value")
            elif rec["op"] == "del":
                mem[rec["key"]] = None
        self.f.seek(0, os.SEEK_END)
        return mem

    def reset(self):
        # everything logged so far is now in an SSTable
        self.f.seek(0)
        self.f.truncate()
        self.f.flush()
        os.fsync(self.f.fileno())

    def close(self):
        if not self.f.closed:
            self.f.close()
