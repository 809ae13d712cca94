"""Persistent campaign name -> HubSpot campaign id cache.

HubSpot stays the source of truth; this file only saves lookups. Writes go
through a temp file and os.replace so an interrupted run never leaves a
truncated map behind. Concurrent writers are last-writer-wins.
"""

import json
import logging
import os
import tempfile
from typing import Optional

logger = logging.getLogger(__name__)


class CampaignMap:
    def __init__(self, path: str):
        self.path = path
        self._by_name: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read()
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, ValueError) as e:
            logger.warning("Could not read campaign map %s, starting empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        # Older maps were a flat {name: id} object.
        by_name = data.get("byName", data)
        if not isinstance(by_name, dict):
            return {}
        return {str(k): str(v) for k, v in by_name.items() if k and v and not isinstance(v, dict)}

    def get(self, name: str) -> Optional[str]:
        return self._by_name.get(name)

    def set(self, name: str, campaign_id: str) -> None:
        if self._by_name.get(name) == campaign_id:
            return
        # Re-read first so entries written by another run since we loaded survive.
        self._by_name = self._load()
        self._by_name[name] = campaign_id
        self._save()

    def update(self, entries: dict[str, str]) -> int:
        """Merge many name -> id pairs in one write. Returns how many changed."""
        changed = {k: v for k, v in entries.items() if k and v and self._by_name.get(k) != v}
        if not changed:
            return 0
        self._by_name = self._load()
        self._by_name.update(changed)
        self._save()
        return len(changed)

    def remove(self, name: str) -> None:
        if name not in self._by_name:
            return
        self._by_name = self._load()
        self._by_name.pop(name, None)
        self._save()

    def __len__(self) -> int:
        return len(self._by_name)

    def _save(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".campaign-map-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"byName": self._by_name}, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
