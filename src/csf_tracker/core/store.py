"""
Base class for the in-memory entity stores.

Stores hold a list of pydantic entities and never mutate an entity in place:
every write builds a new list, pushes the previous list onto a bounded undo
stack and notifies subscribers. Reads hand out deep copies.
"""

from datetime import datetime
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from csf_tracker.core.config import DEFAULT_HISTORY_LIMIT
from csf_tracker.core.errors import ValidationError
from csf_tracker.models.common import utc_now
from csf_tracker.models.results import ImportResult, RowError

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=BaseModel)

Listener = Callable[[str, str], None]
Transition = Union[dict, Callable[[Any], dict]]


class EntityStore(Generic[E]):
    """Copy-on-write collection of one entity type."""

    store_name: str = "entities"
    collection: str = "items"
    key_field: str = "id"
    model: type[E]

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._items: list[E] = []
        self._undo_stack: list[list[E]] = []
        self._redo_stack: list[list[E]] = []
        self._history_limit = history_limit
        self._listeners: list[Listener] = []
        self._clock = clock

    # ==================== Reads ====================

    def all(self) -> list[E]:
        return [item.model_copy(deep=True) for item in self._items]

    def get(self, key: str) -> Optional[E]:
        index = self._index(key)
        if index < 0:
            return None
        return self._items[index].model_copy(deep=True)

    def exists(self, key: str) -> bool:
        return self._index(key) >= 0

    def keys(self) -> list[str]:
        return [self._key(item) for item in self._items]

    def count(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    # ==================== Writes ====================

    def create(self, data: Union[dict, E]) -> E:
        """Validate and append a new entity.

        Raises:
            ValidationError: If the entity is invalid or its key is taken.
        """
        entity = self.build(data)
        key = self._key(entity)
        if self.exists(key):
            raise ValidationError(
                f"{self.model.__name__} '{key}' already exists",
                field=self.key_field,
                entity_id=key,
            )
        self._commit(self._items + [entity], "create")
        return entity.model_copy(deep=True)

    def update(self, key: str, fields: dict) -> Optional[E]:
        """Merge ``fields`` into the entity with ``key``.

        Updating an unknown key is a no-op and returns None.
        """
        index = self._index(key)
        if index < 0:
            logger.debug("update_ignored", store=self.store_name, key=key)
            return None

        current = self._items[index]
        updated = self._apply(current, self._prepare_update(current, dict(fields)))
        new_key = self._key(updated)
        if new_key != key and self.exists(new_key):
            raise ValidationError(
                f"{self.model.__name__} '{new_key}' already exists",
                field=self.key_field,
                entity_id=new_key,
            )

        items = list(self._items)
        items[index] = updated
        self._commit(items, "update")
        return updated.model_copy(deep=True)

    def delete(self, key: str) -> bool:
        """Remove an entity. Deleting an unknown key is a no-op."""
        if not self.exists(key):
            return False
        self._commit([item for item in self._items if self._key(item) != key], "delete")
        return True

    def bulk_update_items(self, keys: Iterable[str], transition: Transition) -> int:
        """Apply one transition to many entities as a single change.

        Args:
            keys: Keys of the entities to change. Unknown keys are ignored.
            transition: Either a dict of fields or a callable taking the
                current entity and returning a dict of fields.

        Returns:
            Number of entities changed.
        """
        wanted = set(keys)
        items = []
        changed = 0
        for item in self._items:
            if self._key(item) in wanted:
                fields = transition(item.model_copy(deep=True)) if callable(transition) else transition
                item = self._apply(item, self._prepare_update(item, dict(fields)))
                changed += 1
            items.append(item)
        if changed:
            self._commit(items, "bulk_update")
        return changed

    def upsert_many(self, entities: Iterable[E], action: str = "import") -> list[str]:
        """Append entities, replacing any existing entity with the same key.

        All changes land as a single history entry.
        """
        items = list(self._items)
        positions = {self._key(item): i for i, item in enumerate(items)}
        touched = []
        for entity in entities:
            key = self._key(entity)
            if key in positions:
                items[positions[key]] = entity
            else:
                positions[key] = len(items)
                items.append(entity)
            touched.append(key)
        if touched:
            self._commit(items, action)
        return touched

    def build(self, data: Union[dict, E]) -> E:
        """Validate raw data into an entity stamped with creation times."""
        raw = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        raw = self._prepare_create(raw)
        now = self._clock()
        for stamp in ("created_date", "last_modified"):
            if stamp in self.model.model_fields and not raw.get(stamp):
                raw[stamp] = now
        return self._validate(raw)

    # ==================== Snapshots ====================

    def snapshot(self) -> dict:
        """Plain-JSON state of the store, suitable for persistence."""
        state = {self.collection: [item.model_dump(mode="json") for item in self._items]}
        state.update(self._extra_state())
        return state

    def restore(self, state: dict) -> None:
        """Replace the store contents from a snapshot, clearing history."""
        self._items = [self._validate(record) for record in state.get(self.collection) or []]
        self._restore_extra_state(state)
        self._undo_stack.clear()
        self._redo_stack.clear()

    # ==================== History ====================

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def undo(self) -> bool:
        if not self._undo_stack:
            return False
        self._redo_stack.append(self._items)
        self._items = self._undo_stack.pop()
        self._notify("undo")
        return True

    def redo(self) -> bool:
        if not self._redo_stack:
            return False
        self._undo_stack.append(self._items)
        self._items = self._redo_stack.pop()
        self._notify("redo")
        return True

    # ==================== Observers ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ==================== Hooks ====================

    def _prepare_create(self, raw: dict) -> dict:
        return raw

    def _prepare_update(self, current: E, fields: dict) -> dict:
        return fields

    def _extra_state(self) -> dict:
        return {}

    def _restore_extra_state(self, state: dict) -> None:
        pass

    # ==================== Internals ====================

    def _key(self, item: E) -> str:
        return getattr(item, self.key_field)

    def _index(self, key: str) -> int:
        for i, item in enumerate(self._items):
            if self._key(item) == key:
                return i
        return -1

    def _validate(self, raw: dict) -> E:
        try:
            return self.model.model_validate(raw)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(
                f"Invalid {self.model.__name__}: {field or 'value'}: {first.get('msg')}",
                field=field or None,
                entity_id=raw.get(self.key_field) if isinstance(raw, dict) else None,
            ) from e

    def _apply(self, current: E, fields: dict) -> E:
        unknown = set(fields) - set(self.model.model_fields)
        if unknown:
            raise ValidationError(
                f"Unknown {self.model.__name__} fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
                entity_id=self._key(current),
            )
        data = current.model_dump()
        data.update(fields)
        if "last_modified" in self.model.model_fields:
            data["last_modified"] = self._clock()
        return self._validate(data)

    def _commit(self, items: list[E], action: str) -> None:
        self._undo_stack.append(self._items)
        if len(self._undo_stack) > self._history_limit:
            del self._undo_stack[0]
        self._redo_stack.clear()
        self._items = items
        self._notify(action)

    def _notify(self, action: str) -> None:
        for listener in list(self._listeners):
            listener(self.store_name, action)

    # ==================== Imports ====================

    def _merge_records(self, records: Iterable[tuple[int, dict]], result: ImportResult) -> None:
        """Validate decoded rows and upsert them as one change.

        Rows whose key matches an existing (or earlier imported) entity update
        it; others are appended. Invalid rows are skipped and reported.
        """
        staged: dict[str, E] = {}
        for row_number, record in records:
            key = record.get(self.key_field)
            current = staged.get(key) if key else None
            if current is None and key:
                index = self._index(key)
                current = self._items[index] if index >= 0 else None
            try:
                entity = self._apply(current, record) if current is not None else self.build(record)
            except ValidationError as e:
                self._skip_row(result, row_number, e.message)
                continue
            staged[self._key(entity)] = entity
            result.imported += 1
        result.keys = self.upsert_many(staged.values())
        logger.info(
            "csv_import_completed",
            store=self.store_name,
            imported=result.imported,
            skipped=result.skipped,
        )

    def _skip_row(self, result: ImportResult, row_number: int, message: str) -> None:
        result.skipped += 1
        result.errors.append(RowError(row_number=row_number, message=message))
        logger.warning("csv_row_skipped", store=self.store_name, row=row_number, reason=message)
