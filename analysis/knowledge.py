"""Knowledge cache of number profiles.

Entries live under the ``number-profile`` scope:

- ``number:<NN>``: serialized NumberProfile
- ``number-profile:__meta__``: ``{"total_draws": int}``
- ``number-profile:__latest__``: ``{"latest_timestamp": iso | None}``

A missing meta entry, or one whose totals disagree with the store, means
the cache is stale and must be rebuilt.
"""

import logging
from datetime import datetime
from typing import Optional

from analysis.profiles import calcular_memoria, refrescar_recencia
from analysis.timeline import build_timeline
from models.domain import MemorySnapshot, NumberProfile
from models.repositories import DrawRepository, HypothesisRepository, KnowledgeRepository

logger = logging.getLogger(__name__)

PROFILE_SCOPE = "number-profile"
META_KEY = "number-profile:__meta__"
LATEST_KEY = "number-profile:__latest__"


def profile_key(numero: int) -> str:
    return f"number:{numero:02d}"


class KnowledgeBase:
    """Rebuilds and serves the persisted profile snapshot."""

    def __init__(self, draws: DrawRepository, hypotheses: HypothesisRepository,
                 knowledge: KnowledgeRepository):
        self.draws = draws
        self.hypotheses = hypotheses
        self.knowledge = knowledge

    def rebuild_knowledge(self, now: Optional[datetime] = None) -> MemorySnapshot:
        """Recompute every profile from the store and replace the cached scope."""
        timeline = build_timeline(self.draws.list_draws(exclude_test=True))
        self.knowledge.clear_scope(PROFILE_SCOPE)

        if not timeline:
            logger.info("No draws available, knowledge cache cleared")
            return MemorySnapshot()

        snapshot = calcular_memoria(
            timeline,
            self.hypotheses.list_hypotheses(),
            self.hypotheses.list_logs(),
            now=now,
        )

        entries = [
            (profile_key(perfil.numero), PROFILE_SCOPE, perfil.model_dump(mode='json'))
            for perfil in snapshot.perfiles
        ]
        entries.append((META_KEY, PROFILE_SCOPE, {'total_draws': snapshot.total_draws}))
        entries.append((LATEST_KEY, PROFILE_SCOPE, {
            'latest_timestamp': snapshot.latest_timestamp.isoformat() if snapshot.latest_timestamp else None
        }))
        self.knowledge.save_entries(entries)

        logger.info(f"Knowledge rebuilt: {len(snapshot.perfiles)} profiles from {snapshot.total_draws} draws")
        return snapshot

    def obtener_perfiles(self, now: Optional[datetime] = None) -> MemorySnapshot:
        """Serve the cached snapshot, rebuilding when it is missing or out of date.

        The cache is out of date when its draw count or latest timestamp no
        longer match the store. On a hit, recency is recomputed for ``now``.
        """
        entries = self.knowledge.list_by_scope(PROFILE_SCOPE)
        meta = entries.pop(META_KEY, None)
        latest = entries.pop(LATEST_KEY, None)

        if meta is None or latest is None or not entries:
            logger.info("Knowledge cache stale or empty, rebuilding")
            return self.rebuild_knowledge(now=now)

        timeline = build_timeline(self.draws.list_draws(exclude_test=True))
        latest_value = latest.get('latest_timestamp')
        latest_timestamp = datetime.fromisoformat(latest_value) if latest_value else None
        current_latest = timeline[-1].momento if timeline else None
        if meta.get('total_draws') != len(timeline) or latest_timestamp != current_latest:
            logger.info(f"Knowledge cache out of date ({meta.get('total_draws')} cached, "
                        f"{len(timeline)} stored), rebuilding")
            return self.rebuild_knowledge(now=now)

        perfiles = sorted(
            (NumberProfile.model_validate(data) for data in entries.values()),
            key=lambda perfil: perfil.numero
        )
        if now is not None:
            refrescar_recencia(perfiles, now)
        return MemorySnapshot(
            total_draws=meta['total_draws'],
            latest_timestamp=latest_timestamp,
            perfiles=perfiles,
        )

    def obtener_perfil_numero(self, numero: int) -> Optional[NumberProfile]:
        data = self.knowledge.get(profile_key(numero))
        return NumberProfile.model_validate(data) if data else None
