"""Global-uniqueness renaming for identifiers that must survive optimization."""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

LOG = logging.getLogger(__name__)

DEFAULT_SEED = "closure-bridge"


@dataclass
class Anomaly:
    """A non-fatal problem recorded while processing a unit."""

    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass
class MangleTable:
    forward: Dict[str, str] = field(default_factory=dict)
    inverse: Dict[str, str] = field(default_factory=dict)
    origins: Dict[str, str] = field(default_factory=dict)
    origin_ids: Dict[str, str] = field(default_factory=dict)


class Mangler:
    """Bidirectional mapping between original names and their mangled forms.

    One instance may be shared by every unit of a build; every
    read-modify-write happens under ``self._lock``.
    """

    def __init__(self, seed: str = DEFAULT_SEED) -> None:
        self.seed = seed
        self.table = MangleTable()
        self.anomalies: List[Anomaly] = []
        self._lock = threading.RLock()

    def origin_id(self, origin: str) -> str:
        with self._lock:
            existing = self.table.origins.get(origin)
            if existing is not None:
                return existing
            digest = hashlib.sha1(f"{self.seed}:{origin}".encode("utf-8")).hexdigest()
            identifier = "o" + digest[:8]
            self.table.origins[origin] = identifier
            self.table.origin_ids[identifier] = origin
            return identifier

    def mangle(self, name: str, origin_id: str) -> str:
        mangled = f"{name}__{origin_id}"
        with self._lock:
            current = self.table.forward.get(name)
            if current is None:
                self.table.forward[name] = mangled
            elif current != mangled:
                anomaly = Anomaly(
                    "MangleCollision",
                    f"{name} already mangled to {current}, keeping it over {mangled}",
                )
                self.anomalies.append(anomaly)
                LOG.warning("%s", anomaly)
            self.table.inverse[mangled] = name
        return mangled

    def resolve(self, mangled: str) -> Optional[str]:
        with self._lock:
            return self.table.inverse.get(mangled)

    def mangled_name(self, original: str) -> Optional[str]:
        with self._lock:
            return self.table.forward.get(original)

    def origin(self, identifier: str) -> Optional[str]:
        with self._lock:
            return self.table.origin_ids.get(identifier)


__all__ = ["Anomaly", "DEFAULT_SEED", "MangleTable", "Mangler"]
