"""Local JSON file store: <data_dir>/<key>.json"""

import json
import os
from pathlib import Path
from typing import Any, Optional


class LocalFileStore:

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def read(self, key: str) -> Optional[Any]:
        """Return the stored document, or None when the file is missing."""
        path = self.path_for(key)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(value, fh, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
