"""
User price overrides layered over the built-in catalog.

The override layer lives in one JSON file (the durable key). Every save
rewrites the whole layer, so a crash mid-write can never drop overrides for
labels other than the one being edited.

Readers never lock: the layer is a dict that is swapped wholesale on every
write (copy, modify, rebind), so a reader that grabbed the old reference keeps
a consistent snapshot.
Writers run in worker threads and are serialised by one lock, so the file on
disk always holds the layer of the last edit.
"""
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from pricescan.orchestrator.contracts import CatalogMapping, Label, PriceRecord
from pricescan.orchestrator.errors import OverrideParseError, PersistError
from pricescan.services.models import PriceRecordIn

_LAYER_ADAPTER = TypeAdapter(Dict[str, PriceRecordIn])


def merge(defaults: CatalogMapping, overrides: CatalogMapping) -> Dict[Label, PriceRecord]:
    """Effective mapping: override wins per key, defaults fill the rest."""
    merged = dict(defaults)
    merged.update(overrides)
    return merged


def _record_to_json(rec: PriceRecord) -> dict:
    return {"display_name": rec.display_name, "price": rec.price, "category": rec.category}


def parse_layer(raw: str) -> Dict[Label, PriceRecord]:
    try:
        layer = _LAYER_ADAPTER.validate_json(raw)
    except ValidationError as e:
        raise OverrideParseError(f"invalid override content: {e.error_count()} error(s)") from e
    return {label: rec.to_record() for label, rec in layer.items()}


class OverrideStore:
    def __init__(self, path: str | Path, defaults: CatalogMapping, status_store):
        self.path = Path(path)
        self.status = status_store
        self._defaults = dict(defaults)
        self._overrides: Dict[Label, PriceRecord] = {}
        self._write_lock = threading.Lock()

    # ── Startup ────────────────────────────────────────────────────────────

    def load_persisted(self) -> Dict[Label, PriceRecord]:
        """Read the override layer from disk. Never raises.

        Absent, unreadable or malformed content all come back as an empty layer.
        """
        if not self.path.exists():
            self.status.log(f"override_store: no overrides at {self.path}")
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
            layer = parse_layer(raw)
        except (OSError, UnicodeDecodeError, OverrideParseError) as e:
            self.status.log(f"override_store: ignoring persisted overrides ({type(e).__name__}: {e})")
            return {}
        self.status.log(f"override_store: loaded {len(layer)} override(s)")
        return layer

    def load(self):
        """Replace the in-memory layer with whatever is persisted."""
        self._overrides = self.load_persisted()

    # ── Reads (every tick) ─────────────────────────────────────────────────

    @property
    def defaults(self) -> CatalogMapping:
        return self._defaults

    def overrides(self) -> Mapping[Label, PriceRecord]:
        return self._overrides

    def snapshot(self) -> Dict[Label, PriceRecord]:
        return merge(self._defaults, self._overrides)

    def get_effective(self, label: Label) -> Optional[PriceRecord]:
        overrides = self._overrides
        if label in overrides:
            return overrides[label]
        return self._defaults.get(label)

    def source_of(self, label: Label) -> str:
        if label in self._overrides:
            return "override"
        if label in self._defaults:
            return "default"
        return "unmapped"

    # ── Writes (user saves) ────────────────────────────────────────────────

    def set_override(self, label: Label, record: PriceRecord):
        """Apply the edit in memory, then persist the full layer.

        Raises PersistError if the save fails; the in-memory edit stays.
        """
        with self._write_lock:
            layer = dict(self._overrides)
            layer[label] = record
            self._overrides = layer
            self.status.log(f"override_store: set '{label}' -> {record.price}")
            self._persist(layer)

    def clear_override(self, label: Label) -> bool:
        """Drop a user override so the default (if any) applies again."""
        with self._write_lock:
            if label not in self._overrides:
                return False
            layer = dict(self._overrides)
            del layer[label]
            self._overrides = layer
            self.status.log(f"override_store: cleared '{label}'")
            self._persist(layer)
            return True

    def _persist(self, layer: Mapping[Label, PriceRecord]):
        payload = json.dumps(
            {label: _record_to_json(rec) for label, rec in layer.items()},
            ensure_ascii=False, indent=2, sort_keys=True,
        )
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".overrides-", suffix=".tmp", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            self.status.persist_error = str(e)
            self.status.log(f"override_store: persist failed: {e}")
            raise PersistError(str(e)) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        self.status.persist_error = None
