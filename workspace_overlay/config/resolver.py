from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict, List, Mapping, Optional

from .models import WorkspacesConfig
from .overlay import merge_overrides
from .types import PROFILE_LOCAL_FIELDS

logger = logging.getLogger(__name__)


class EffectiveSettingsResolver:
    """Computes and caches the merged settings of each workspace."""

    def __init__(self) -> None:
        self._cache: Dict[str, Dict[str, Any]] = {}

    def invalidate(self) -> None:
        self._cache.clear()

    def cached_ids(self) -> List[str]:
        return list(self._cache)

    def target_id(self, workspace_id: Optional[str], config: WorkspacesConfig) -> str:
        ws_id = workspace_id or config.active_workspace_id or config.default_workspace_id
        if ws_id not in config.by_id:
            return config.default_workspace_id
        return ws_id

    def resolve(
        self,
        workspace_id: Optional[str],
        settings: Mapping[str, Any],
        config: WorkspacesConfig,
    ) -> Dict[str, Any]:
        ws_id = self.target_id(workspace_id, config)
        cached = self._cache.get(ws_id)
        if cached is None:
            cached = self._build(ws_id, settings, config)
            self._cache[ws_id] = cached
        return deepcopy(cached)

    def _build(
        self, ws_id: str, settings: Mapping[str, Any], config: WorkspacesConfig
    ) -> Dict[str, Any]:
        workspace = config.by_id[ws_id]
        if ws_id == config.default_workspace_id:
            effective = deepcopy(dict(settings))
        else:
            effective = merge_overrides(settings, workspace.overrides)
        for key in PROFILE_LOCAL_FIELDS:
            effective.pop(key, None)
            if key in workspace.overrides:
                effective[key] = deepcopy(workspace.overrides[key])
        logger.debug("Resolved effective settings for workspace %s", ws_id)
        return effective


__all__ = ["EffectiveSettingsResolver"]
