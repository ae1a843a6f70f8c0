"""Settings table access and immutable configuration snapshots"""

from collections import defaultdict
from typing import Any, Dict, Mapping
from sqlalchemy.orm import Session
from credit_engine.infrastructure.database.models import SettingRecord
from credit_engine.domain.policy import (
    APPROVAL_DEFAULTS,
    CREDIT_DEFAULTS,
    SCORING_DEFAULTS,
    EngineConfig,
)

GROUP_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "approvals": APPROVAL_DEFAULTS,
    "credit": CREDIT_DEFAULTS,
    "scoring": SCORING_DEFAULTS,
}


class ConfigurationStore:
    """
    Business settings stored per (group, key) as JSON.

    ``snapshot()`` re-reads the table on every call so changes apply to the
    next operation without a restart.
    """

    def __init__(self, db: Session):
        self.db = db

    def _stored_groups(self) -> Dict[str, Dict[str, Any]]:
        groups: Dict[str, Dict[str, Any]] = defaultdict(dict)
        for row in self.db.query(SettingRecord).all():
            groups[row.group][row.key] = row.value
        return dict(groups)

    def get_group(self, group: str) -> Dict[str, Any]:
        """Stored values merged over the built-in defaults"""
        if group not in GROUP_DEFAULTS:
            raise KeyError(f"Unknown settings group: {group}")
        return {**GROUP_DEFAULTS[group], **self._stored_groups().get(group, {})}

    def snapshot(self) -> EngineConfig:
        return EngineConfig.from_groups(self._stored_groups())

    def update_group(self, group: str, values: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Upsert known keys of a group.

        The merged result is validated by building a full snapshot first, so a
        broken band list never reaches the table.
        """
        if group not in GROUP_DEFAULTS:
            raise KeyError(f"Unknown settings group: {group}")

        unknown = set(values) - set(GROUP_DEFAULTS[group])
        if unknown:
            raise KeyError(f"Unknown settings for {group}: {sorted(unknown)}")

        candidate = self._stored_groups()
        candidate[group] = {**candidate.get(group, {}), **values}
        EngineConfig.from_groups(candidate)

        for key, value in values.items():
            row = (
                self.db.query(SettingRecord)
                .filter(SettingRecord.group == group, SettingRecord.key == key)
                .first()
            )
            if row is None:
                self.db.add(SettingRecord(group=group, key=key, value=value))
            else:
                row.value = value
        self.db.flush()

        return self.get_group(group)
