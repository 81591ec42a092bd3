import json

from pathlib import Path
from typing import Dict, Iterable, Iterator, Tuple, Optional


class _Missing:
    def __repr__(self):
        return "MISSING"


# returned by SSTable.get when the key is not in the table at all;
# None means the key is present as a tombstone
MISSING = _Missing()


class SSTable:
    # one index entry every INDEX_SAMPLE records
    INDEX_SAMPLE = 16

    def __init__(self, data_path: Path):
        self.data_path = data_path
        self.index_path = data_path.with_suffix(data_path.suffix + ".idx")
        self.index: Dict[str, int] = {}
        if self.index_path.exists():
            with open(self.index_path, 'r', encoding="utf-8") as f:
                self.index = json.load(f)

    @staticmethod
    def write(data_path: Path, items: Iterable[Tuple[str, Optional[str]]]) -> "SSTable":
        items = sorted(items, key=lambda kv: kv[0])
        index: Dict[str, int] = {}
        with open(data_path, 'w', encoding='utf-8') as f:
            for i, (k, v) in enumerate(items):
                pos = f.tell()
                rec = {"key": k, "value": v}
                f.write(json.dumps(rec) + "\n")
                if i % SSTable.INDEX_SAMPLE == 0:
                    index[k] = pos
        with open(data_path.with_suffix(data_path.suffix + ".idx"), "w", encoding="utf-8") as idxf:
            json.dump(index, idxf)
        return SSTable(data_path)

    def _scan_from(self, start_offset: int) -> Iterator[Tuple[str, Optional[str]]]:
        with open(self.data_path, 'r', encoding='utf-8') as f:
            f.seek(start_offset)
            for line in f:
                if not line.strip():
                    continue
                rec = json.loads(line)
                yield rec["key"], rec.get("value")

    def _offset_for(self, key: str) -> int:
        candidates = [k for k in self.index.keys() if k <= key]
        if not candidates:
            return 0
        return self.index[max(candidates)]

    def get(self, key: str):
        """Value for key, None for a tombstone, MISSING if absent."""
        for k, v in self._scan_from(self._offset_for(key)):
            if k == key:
                return v
            if k > key:
                break
        return MISSING

    def items(self, prefix: str = "") -> Iterator[Tuple[str, Optional[str]]]:
        """All records whose key starts with prefix, tombstones included."""
        for k, v in self._scan_from(self._offset_for(prefix)):
            if k.startswith(prefix):
                yield k, v
            elif k > prefix:
                break
