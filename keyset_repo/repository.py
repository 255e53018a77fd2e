"""Repository class"""

import copy
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from keyset_repo._logging import logger
from keyset_repo.database_operations import DatabaseOperations, affected_rows
from keyset_repo.entities import is_descending
from keyset_repo.exceptions import InvalidIdError, MissingConditionsError, UnknownColumnError
from keyset_repo.filters import Filter, shift_placeholders
from keyset_repo.paginator import DEFAULT_PER_PAGE, KeysetPaginator
from keyset_repo.query_builder import QueryBuilder

T_schema = TypeVar("T_schema", bound=BaseModel)  # Database row entity
T_domain = TypeVar("T_domain", bound=BaseModel)  # Domain/business entity
U = TypeVar("U", bound=BaseModel)  # Update model type

_TIMESTAMP_COLUMNS = ("created_at", "updated_at")


class RepositoryConfig(BaseModel):
    """Configuration options for Repository"""

    db_schema: str | None = Field(default=None, description="Database schema name")


class Repository(Generic[T_schema, T_domain, U]):
    """Async repository over one table.

    Supports separation between storage entities (T_schema) and domain
    entities (T_domain); when they are the same use Repository[T, T, U].

    Column names reaching SQL are checked against the fields of the schema
    entity, so a name coming from a request can't inject SQL. Values are always
    bound as parameters.

    Type Parameters:
        T_schema: Database schema entity (one field per column)
        T_domain: Domain/business entity (what users work with)
        U: Closed update model
    """

    def __init__(
        self,
        entity_schema_class: type[T_schema],
        entity_domain_class: type[T_domain] | None = None,
        update_class: type[U] | None = None,
        table_name: str | None = None,
        config: RepositoryConfig | None = None,
    ):
        if entity_schema_class is None:
            raise ValueError("entity_schema_class is required")
        if table_name is None:
            raise ValueError("table_name is required")
        if update_class is None:
            raise ValueError("update_class is required")

        if entity_domain_class is None:
            entity_domain_class = entity_schema_class  # type: ignore[assignment]

        self.entity_schema_class = entity_schema_class
        self.entity_domain_class = entity_domain_class
        self.update_class = update_class
        self.table_name = table_name
        self.config = config or RepositoryConfig()
        self._qualified_table_name = (
            f"{self.config.db_schema}.{table_name}"
            if self.config.db_schema
            else table_name
        )
        self._query_builder: QueryBuilder | None = None

        self.columns: frozenset[str] = frozenset(entity_schema_class.model_fields)
        self.db_ops = DatabaseOperations()

    # Mapping

    def to_domain_entity(self, schema_entity: T_schema) -> T_domain:
        """Convert a schema entity to a domain entity.

        Override in subclasses to customize the mapping from storage to domain.
        """
        if self.entity_schema_class == self.entity_domain_class:
            return schema_entity  # type: ignore[return-value]
        return self.entity_domain_class(**schema_entity.model_dump())  # type: ignore[return-value]

    def _map_row(self, row: Any) -> T_domain:
        return self.to_domain_entity(self.entity_schema_class(**dict(row)))

    def _map_rows(self, rows: Iterable[Any]) -> list[T_domain]:
        return [self._map_row(row) for row in rows]

    def check_column(self, column: str) -> str:
        """Return column if the schema entity declares it, raise UnknownColumnError otherwise"""
        if column not in self.columns:
            raise UnknownColumnError(column, self.table_name)
        return column

    # Fluent query methods that return a new repository instance

    def _get_or_create_query_builder(self) -> QueryBuilder:
        if self._query_builder is None:
            return QueryBuilder(self._qualified_table_name)
        return self._query_builder

    def _clone_with_query_builder(self, query_builder: QueryBuilder):
        new_repo = copy.copy(self)
        new_repo._query_builder = query_builder
        return new_repo

    def where(self, field: str, *args: Any):
        """Add a WHERE condition: where(field, value) or where(field, operator, value)"""
        self.check_column(field)
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where(field, *args)
        )

    def or_where(self, field: str, *args: Any):
        """Add an OR WHERE condition: or_where(field, value) or or_where(field, operator, value)"""
        self.check_column(field)
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().or_where(field, *args)
        )

    def where_in(self, field: str, values: list):
        self.check_column(field)
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where_in(field, values)
        )

    def where_not_in(self, field: str, values: list):
        self.check_column(field)
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where_not_in(field, values)
        )

    def where_raw(self, where: Filter | None):
        """AND an opaque Filter. Its clause is trusted and not inspected."""
        if not where:
            return self
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().where_raw(where)
        )

    def order_by(self, field: str):
        return self.order_by_asc(field)

    def order_by_asc(self, field: str):
        self.check_column(field)
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().order_by_asc(field)
        )

    def order_by_desc(self, field: str):
        self.check_column(field)
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().order_by_desc(field)
        )

    def order_by_mapping(self, order_by: Mapping[str, Any] | None):
        """Apply a column -> direction mapping. Only 'desc' (any case) sorts descending."""
        repo = self
        for column, direction in (order_by or {}).items():
            repo = repo.order_by_desc(column) if is_descending(direction) else repo.order_by_asc(column)
        return repo

    def limit(self, count: int):
        return self._clone_with_query_builder(
            self._get_or_create_query_builder().limit(count)
        )

    # Execution methods for fluent queries

    async def get(self) -> list[T_domain]:
        """Execute the query and return all matching entities"""
        query, params = self._get_or_create_query_builder().build()
        rows = await self.db_ops.fetch_all(query, params)
        return self._map_rows(rows)

    async def first(self) -> T_domain | None:
        """Execute the query and return the first matching entity"""
        query, params = self._get_or_create_query_builder().limit(1).build()
        row = await self.db_ops.fetch_one(query, params)
        return self._map_row(row) if row else None

    async def count(self) -> int:
        query, params = self._get_or_create_query_builder().as_count().build()
        result = await self.db_ops.fetch_value(query, params)
        return result or 0

    async def exists(self) -> bool:
        return await self.count() > 0

    def to_sql(self) -> str:
        return self._get_or_create_query_builder().to_sql()

    def build(self) -> tuple[str, list[Any]]:
        return self._get_or_create_query_builder().build()

    # Finders

    async def find_by_id(self, entity_id: int) -> T_domain | None:
        if entity_id is None or entity_id < 1:
            raise InvalidIdError(entity_id)
        return await self.where("id", entity_id).first()

    async def find_first(self) -> T_domain | None:
        """First record by id ascending"""
        return await self.order_by_asc("id").first()

    async def find_first_n(self, count: int) -> list[T_domain]:
        return await self.order_by_asc("id").limit(count).get()

    async def find_last(self) -> T_domain | None:
        """Last record by id (descending order)"""
        return await self.order_by_desc("id").first()

    async def find_last_n(self, count: int) -> list[T_domain]:
        return await self.order_by_desc("id").limit(count).get()

    async def find_many(self, ids: Iterable[int]) -> list[T_domain]:
        """Find the records with the given ids, ordered by id"""
        ids = list(ids)
        if not ids:
            return []
        return await self.where_in("id", ids).order_by_asc("id").get()

    async def find_by(self, field: str, value: Any) -> T_domain | None:
        return await self.where(field, value).first()

    async def find_all_by(self, field: str, value: Any) -> list[T_domain]:
        return await self.where(field, value).get()

    async def all(self) -> list[T_domain]:
        return await self._clone_with_query_builder(
            QueryBuilder(self._qualified_table_name)
        ).get()

    async def find_where(
        self,
        where: Filter | None,
        order_by: Mapping[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[T_domain]:
        """Records matching an opaque filter, ordered and limited"""
        repo = self.where_raw(where).order_by_mapping(order_by)
        if limit is not None:
            repo = repo.limit(limit)
        return await repo.get()

    async def count_where(self, where: Filter | None = None) -> int:
        return await self.where_raw(where).count()

    async def pluck(self, column: str, where: Filter | None = None) -> list[Any]:
        """Values of a single column for the records matching where"""
        self.check_column(column)
        builder = (
            QueryBuilder(self._qualified_table_name)
            .select(column)
            .where_raw(where or Filter())
        )
        query, params = builder.build()
        rows = await self.db_ops.fetch_all(query, params)
        return [row[column] for row in rows]

    async def ids(self, where: Filter | None = None) -> list[int]:
        return await self.pluck("id", where)

    # Writes

    def _apply_automatic_fields(
        self, data: dict[str, Any], is_create: bool = True
    ) -> dict[str, Any]:
        """Fill created_at/updated_at when the schema has them"""
        current_time = datetime.now(UTC)
        if is_create and "created_at" in self.columns and data.get("created_at") is None:
            data["created_at"] = current_time
        if "updated_at" in self.columns and (not is_create or data.get("updated_at") is None):
            data["updated_at"] = current_time
        return data

    def _validated(self, entity: BaseModel) -> BaseModel:
        # model_copy(update=...) and model_construct bypass field validation
        return type(entity).model_validate(entity.model_dump())

    def _insert_fields(self, entity: BaseModel) -> dict[str, Any]:
        fields = self._validated(entity).model_dump()
        if fields.get("id") is None:
            fields.pop("id", None)
        fields = self._apply_automatic_fields(fields, is_create=True)
        return {k: v for k, v in fields.items() if k in self.columns}

    def _update_fields(self, update_data: U | Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(update_data, self.update_class):
            # Mappings go through the closed update model; unknown keys fail here
            update_data = self.update_class.model_validate(update_data)
        update_dict = update_data.model_dump(exclude_unset=True)
        for column in update_dict:
            self.check_column(column)
        if not update_dict:
            return {}
        return self._apply_automatic_fields(update_dict, is_create=False)

    async def create(self, entity: T_domain) -> T_domain:
        """Insert an entity and return it as stored (with its new id)"""
        fields = self._insert_fields(entity)
        columns = ", ".join(fields.keys())
        values = list(fields.values())
        placeholders = ", ".join([f"${i + 1}" for i in range(len(values))])

        row = await self.db_ops.fetch_one(
            f"INSERT INTO {self._qualified_table_name} ({columns}) "
            f"VALUES ({placeholders}) RETURNING *",
            values,
        )
        created = self._map_row(row)
        logger.info(
            "Record created",
            extra={"table": self.table_name, "id": getattr(created, "id", None)},
        )
        return created

    async def create_many(self, entities: list[T_domain]) -> list[T_domain]:
        """Insert several entities with one statement"""
        if not entities:
            return []

        all_fields = [self._insert_fields(entity) for entity in entities]
        columns = list(dict.fromkeys(k for fields in all_fields for k in fields))
        field_count = len(columns)

        rows_placeholders = []
        all_values: list[Any] = []
        for i, fields in enumerate(all_fields):
            all_values.extend(fields.get(column) for column in columns)
            row_placeholders = ", ".join(
                [f"${j + i * field_count + 1}" for j in range(field_count)]
            )
            rows_placeholders.append(f"({row_placeholders})")

        rows = await self.db_ops.fetch_all(
            f"INSERT INTO {self._qualified_table_name} ({', '.join(columns)}) "
            f"VALUES {', '.join(rows_placeholders)} RETURNING *",
            all_values,
        )
        return self._map_rows(rows)

    async def save(self, entity: T_domain) -> T_domain | None:
        """Insert the entity when it has no id yet, otherwise overwrite every column"""
        entity_id = getattr(entity, "id", None)
        if entity_id is None:
            return await self.create(entity)
        if entity_id < 1:
            raise InvalidIdError(entity_id)

        fields = {
            k: v
            for k, v in self._validated(entity).model_dump().items()
            if k in self.columns and k not in ("id", "created_at")
        }
        fields = self._apply_automatic_fields(fields, is_create=False)
        set_clause = ", ".join([f"{k} = ${i + 2}" for i, k in enumerate(fields)])

        row = await self.db_ops.fetch_one(
            f"UPDATE {self._qualified_table_name} SET {set_clause} "
            f"WHERE id = $1 RETURNING *",
            [entity_id, *fields.values()],
        )
        return self._map_row(row) if row else None

    async def update(
        self, entity_id: int, update_data: U | Mapping[str, Any]
    ) -> T_domain | None:
        """Update the set fields of update_data and return the updated entity"""
        if entity_id is None or entity_id < 1:
            raise InvalidIdError(entity_id)
        update_dict = self._update_fields(update_data)
        if not update_dict:
            return await self.find_by_id(entity_id)

        set_clause = ", ".join([f"{k} = ${i + 2}" for i, k in enumerate(update_dict)])
        row = await self.db_ops.fetch_one(
            f"UPDATE {self._qualified_table_name} SET {set_clause} "
            f"WHERE id = $1 RETURNING *",
            [entity_id, *update_dict.values()],
        )
        return self._map_row(row) if row else None

    async def update_where(
        self, where: Filter | None, update_data: U | Mapping[str, Any]
    ) -> int:
        """Apply the same update to every record matching where; returns the count"""
        if not where:
            raise MissingConditionsError("update")
        update_dict = self._update_fields(update_data)
        if not update_dict:
            return 0

        set_clause = ", ".join([f"{k} = ${i + 1}" for i, k in enumerate(update_dict)])
        where_clause = shift_placeholders(where.clause, len(update_dict))
        status = await self.db_ops.execute_query(
            f"UPDATE {self._qualified_table_name} SET {set_clause} WHERE {where_clause}",
            [*update_dict.values(), *where.params],
        )
        return affected_rows(status)

    async def destroy(self, entity_id: int) -> bool:
        """Delete a record by id; False when nothing was deleted"""
        if entity_id is None or entity_id < 1:
            raise InvalidIdError(entity_id)
        status = await self.db_ops.execute_query(
            f"DELETE FROM {self._qualified_table_name} WHERE id = $1", [entity_id]
        )
        deleted = affected_rows(status) > 0
        logger.info(
            "Record destroyed" if deleted else "Nothing to destroy",
            extra={"table": self.table_name, "id": entity_id},
        )
        return deleted

    async def destroy_many(self, ids: Iterable[int]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        placeholders = ", ".join([f"${i + 1}" for i in range(len(ids))])
        status = await self.db_ops.execute_query(
            f"DELETE FROM {self._qualified_table_name} WHERE id IN ({placeholders})",
            ids,
        )
        return affected_rows(status)

    async def destroy_where(self, where: Filter | None) -> int:
        """Delete every record matching where. An empty filter is refused."""
        if not where:
            raise MissingConditionsError("delete")
        status = await self.db_ops.execute_query(
            f"DELETE FROM {self._qualified_table_name} WHERE {where.clause}",
            list(where.params),
        )
        return affected_rows(status)

    # Pagination

    def paginator(
        self,
        order_by: Mapping[str, Any],
        where: Filter | None = None,
        per_page: int | None = DEFAULT_PER_PAGE,
        key: str = "id",
    ) -> KeysetPaginator[T_domain]:
        """A keyset paginator reading from this repository"""
        for column in (order_by or {}):
            self.check_column(column)
        self.check_column(key)
        return KeysetPaginator(
            self, where=where, order_by=order_by, per_page=per_page, key=key
        )

    def resume_paginator(
        self,
        order_by: Mapping[str, Any],
        *,
        page_index: int,
        first_key: Any,
        last_key: Any,
        where: Filter | None = None,
        per_page: int | None = DEFAULT_PER_PAGE,
        key: str = "id",
    ) -> KeysetPaginator[T_domain]:
        """A keyset paginator restored from state a previous request observed"""
        for column in (order_by or {}):
            self.check_column(column)
        self.check_column(key)
        return KeysetPaginator.resume(
            self,
            page_index=page_index,
            first_key=first_key,
            last_key=last_key,
            where=where,
            order_by=order_by,
            per_page=per_page,
            key=key,
        )
