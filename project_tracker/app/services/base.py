"""
Shared glue for ownership-scoped entity services.

Each concrete service describes its table once (name, public
projection, ownership predicate, permitted update fields and the
uniqueness constraints it knows how to explain) and inherits the
read/update/delete plumbing from :class:`ScopedEntityService`.

The ownership predicate is a template with two slots, ``{0}`` for the
entity id and ``{1}`` for the acting user's id.  It is applied to every
read, update and delete, so a row that exists but belongs to someone
else is reported exactly like a row that does not exist.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel

from ..core.db import FOREIGN_KEY_VIOLATION, OUT_OF_RANGE, UNIQUE_VIOLATION, QueryResult, RecordStore, StorageError
from ..core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from ..core.update_builder import FieldRule, build_update


class ScopedEntityService:
    """Base class for the user, project and task services."""

    table: ClassVar[str]
    projection: ClassVar[str]
    scope: ClassVar[str]
    read_model: ClassVar[Type[BaseModel]]
    label: ClassVar[str]
    order_by: ClassVar[str] = "created_at DESC, id DESC"
    update_rules: ClassVar[Tuple[FieldRule, ...]] = ()
    # Constraint columns -> (payload field, message)
    conflicts: ClassVar[Dict[Tuple[str, ...], Tuple[str, str]]] = {}

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def not_found(self) -> NotFoundError:
        return NotFoundError(f"{self.label} not found")

    @staticmethod
    def require_ids(**ids: Any) -> None:
        for name, value in ids.items():
            if value is None or value == "":
                raise ValidationError(f"{name} is required", field=name)

    def scope_clause(self, first: int = 1) -> str:
        return self.scope.format(f"?{first}", f"?{first + 1}")

    async def execute(
        self,
        sql: str,
        args: Sequence[Any] = (),
        *,
        missing_reference: Optional[str] = None,
    ) -> QueryResult:
        """Run a statement, translating storage failures to domain errors.

        Parameters
        ----------
        missing_reference : str, optional
            Message for a ``NotFoundError`` raised when a foreign key
            rejects the write (the referenced row does not exist) or an
            id is too large to be stored.
        """
        try:
            return await self.store.execute(sql, args)
        except StorageError as exc:
            if exc.kind == UNIQUE_VIOLATION:
                field, message = self.conflicts.get(
                    tuple(exc.columns), (None, f"{self.label} already exists")
                )
                raise ConflictError(message, field=field, fields=exc.columns) from exc
            if exc.kind == FOREIGN_KEY_VIOLATION and missing_reference:
                raise NotFoundError(missing_reference) from exc
            if exc.kind == OUT_OF_RANGE:
                # An id no INTEGER column can hold matches no row.
                raise (NotFoundError(missing_reference) if missing_reference else self.not_found()) from exc
            raise InternalError(f"{self.label} storage operation failed") from exc

    def to_model(self, row: Dict[str, Any]) -> BaseModel:
        return self.read_model(**row)

    # ------------------------------------------------------------------
    # Scoped operations
    # ------------------------------------------------------------------
    async def fetch_scoped(self, entity_id: Any, acting_user_id: Any) -> BaseModel:
        sql = f"SELECT {self.projection} FROM {self.table} WHERE {self.scope_clause()}"
        row = (await self.execute(sql, (entity_id, acting_user_id))).first()
        if row is None:
            raise self.not_found()
        return self.to_model(row)

    async def list_where(self, condition: str, args: Sequence[Any], empty_message: str) -> List[BaseModel]:
        """List rows matching ``condition`` (numbered placeholders), newest first."""
        sql = (
            f"SELECT {self.projection} FROM {self.table} "
            f"WHERE {condition} ORDER BY {self.order_by}"
        )
        result = await self.execute(sql, args)
        if not result.rows:
            raise NotFoundError(empty_message)
        return [self.to_model(row) for row in result.rows]

    async def update_scoped(
        self,
        entity_id: Any,
        acting_user_id: Any,
        updates: Any,
        **builder_options: Any,
    ) -> BaseModel:
        """Apply a sparse update to a row the acting user owns.

        The whole payload is validated (and any secret re-verified)
        before a single ``UPDATE ... RETURNING`` statement is issued.
        """
        command = await build_update(self.update_rules, updates, **builder_options)
        sql = command.statement(self.table, self.scope, self.projection)
        result = await self.execute(sql, command.arguments(entity_id, acting_user_id))
        row = result.first()
        if row is None:
            raise self.not_found()
        return self.to_model(row)

    async def delete_scoped(self, entity_id: Any, acting_user_id: Any) -> None:
        sql = f"DELETE FROM {self.table} WHERE {self.scope_clause()} RETURNING id"
        result = await self.execute(sql, (entity_id, acting_user_id))
        if not result.affected_count:
            raise self.not_found()
