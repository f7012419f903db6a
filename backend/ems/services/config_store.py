from __future__ import annotations
"""Config store: read-modify-write mutations over the SystemConfig document.

Every mutation reloads the stored document, applies exactly one change, bumps
``version`` and writes the whole object back; only then is the in-memory copy
replaced. Without ``expected_version`` writes are last-write-wins across
sessions. Passing it turns a stale write into ``ConfigConflictError``.
"""
import logging
from typing import Any, Callable, Dict, Iterable, Optional

from ems.errors import (
    ConfigConflictError, DuplicateFieldError, FieldNotFoundError, MalformedConfigError, ValidationError,
)
from ems.forms.fields import DynamicField, Section, SystemConfig, default_config
from ems.services.store import Persistence

logger = logging.getLogger(__name__)


class ConfigStore:
    def __init__(self, store: Persistence, seed: Callable[[], SystemConfig] = default_config):
        self.store = store
        self.seed = seed
        self._config: Optional[SystemConfig] = None
        self._last_good: Optional[SystemConfig] = None

    @property
    def current(self) -> SystemConfig:
        """Last loaded snapshot; possibly stale relative to other sessions."""
        if self._config is None:
            return self.load()
        return self._config

    def load(self) -> SystemConfig:
        raw = self.store.get_config()
        if raw is None:
            config = self.seed()
            logger.info('no stored config; writing seed default')
            config = SystemConfig.from_dict(self.store.save_config(config.to_dict()))
        else:
            try:
                config = SystemConfig.from_dict(raw)
            except MalformedConfigError as exc:
                fallback = self._last_good or self.seed()
                logger.warning('stored config is malformed (%s); using last known good version %s',
                               exc.detail, fallback.version)
                self._config = fallback.copy()
                return self._config.copy()
        self._config = config
        self._last_good = config.copy()
        return config.copy()

    def _mutate(self, change: Callable[[SystemConfig], None], expected_version: Optional[int] = None) -> SystemConfig:
        config = self.load()
        if expected_version is not None and expected_version != config.version:
            raise ConfigConflictError(expected_version, config.version)
        if change(config) is False:
            return config
        config.version += 1
        saved = SystemConfig.from_dict(self.store.save_config(config.to_dict()))
        self._config = saved
        self._last_good = saved.copy()
        return saved.copy()

    def add_field(self, section: Section, field: DynamicField, expected_version: Optional[int] = None) -> SystemConfig:
        field.validate()

        def change(config: SystemConfig):
            fields = config.section(section)
            if any(f.id == field.id for f in fields):
                raise DuplicateFieldError(f'field {field.id} already exists in {section.value}')
            if field.id in config.retired_field_ids.get(section.value, []):
                raise DuplicateFieldError(f'field id {field.id} was used before in {section.value} and cannot be reused')
            if field.order <= 0:
                field.order = max((f.order for f in fields), default=0) + 1
            config.set_section(section, fields + [field])
        return self._mutate(change, expected_version)

    def remove_field(self, section: Section, field_id: str, expected_version: Optional[int] = None) -> SystemConfig:
        def change(config: SystemConfig):
            fields = config.section(section)
            if not any(f.id == field_id for f in fields):
                return False
            config.set_section(section, [f for f in fields if f.id != field_id])
            retired = config.retired_field_ids.setdefault(section.value, [])
            if field_id not in retired:
                retired.append(field_id)
        return self._mutate(change, expected_version)

    def update_field(self, section: Section, field_id: str, partial: Dict[str, Any],
                     expected_version: Optional[int] = None) -> SystemConfig:
        if 'id' in partial and partial['id'] != field_id:
            raise ValidationError('field id is immutable', fields=[field_id])

        def change(config: SystemConfig):
            fields = config.section(section)
            for i, f in enumerate(fields):
                if f.id == field_id:
                    updated = f.merged(partial)
                    if updated.type != f.type:
                        # Stored answers keep their old shape; see DESIGN.md.
                        logger.warning('field %s.%s type changed %s -> %s; existing answers are not migrated',
                                       section.value, field_id, f.type.value, updated.type.value)
                    fields[i] = updated
                    return
            raise FieldNotFoundError(section.value, field_id)
        return self._mutate(change, expected_version)

    def reorder(self, section: Section, from_index: int, to_index: int,
                expected_version: Optional[int] = None) -> SystemConfig:
        def change(config: SystemConfig):
            fields = list(config.section(section))
            if not (0 <= from_index < len(fields)) or not (0 <= to_index < len(fields)):
                raise ValidationError(f'reorder indices out of range for {len(fields)} fields')
            moved = fields.pop(from_index)
            fields.insert(to_index, moved)
            for position, f in enumerate(fields, start=1):
                f.order = position
            config.set_section(section, fields)
        return self._mutate(change, expected_version)

    def toggle_feature(self, name: str, value: bool, expected_version: Optional[int] = None) -> SystemConfig:
        if not name:
            raise ValidationError('feature name required')

        def change(config: SystemConfig):
            config.features[name] = bool(value)
        return self._mutate(change, expected_version)

    def set_keywords(self, critical: Iterable[str], high: Iterable[str],
                     expected_version: Optional[int] = None) -> SystemConfig:
        critical = [w.strip() for w in critical if isinstance(w, str) and w.strip()]
        high = [w.strip() for w in high if isinstance(w, str) and w.strip()]

        def change(config: SystemConfig):
            config.priority_keywords = {'critical': critical, 'high': high}
        return self._mutate(change, expected_version)


__all__ = ['ConfigStore']
