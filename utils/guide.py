"""Symbolic guide: read-only mapping number -> {simbolo, familia, polaridad}."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Any

from config.settings import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class GuideEntry:
    simbolo: str
    familia: Optional[str] = None
    polaridad: Optional[str] = None


class SymbolicGuide:
    """Immutable lookup table injected into detectors and classifiers."""

    def __init__(self, entries: Optional[Dict[int, GuideEntry]] = None):
        self._entries = dict(entries or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SymbolicGuide":
        entries = {}
        for key, value in data.items():
            try:
                numero = int(key)
            except (TypeError, ValueError):
                logger.warning(f"Guide key ignored: {key!r}")
                continue
            if not 0 <= numero <= 99 or not isinstance(value, dict):
                logger.warning(f"Guide entry ignored: {key!r}")
                continue
            entries[numero] = GuideEntry(
                simbolo=str(value.get('simbolo') or ''),
                familia=value.get('familia'),
                polaridad=value.get('polaridad'),
            )
        return cls(entries)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "SymbolicGuide":
        """Load the guide JSON; relative paths resolve against the project root."""
        guide_path = Path(path or settings.guide_path)
        if not guide_path.is_absolute():
            guide_path = PROJECT_ROOT / guide_path
        with open(guide_path, encoding='utf-8') as handle:
            data = json.load(handle)
        logger.info(f"Loaded symbolic guide with {len(data)} entries from {guide_path}")
        return cls.from_dict(data)

    def get(self, numero: int) -> Optional[GuideEntry]:
        return self._entries.get(numero)

    def familia(self, numero: int) -> Optional[str]:
        entry = self._entries.get(numero)
        return entry.familia if entry else None

    def polaridad(self, numero: int) -> Optional[str]:
        entry = self._entries.get(numero)
        return entry.polaridad if entry else None

    def numeros_de_familia(self, familia: str) -> List[int]:
        return sorted(n for n, entry in self._entries.items() if entry.familia == familia)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, numero: int) -> bool:
        return numero in self._entries
