"""
POS Django Store - ORM-backed DataStore
=======================================
Implements the DataStore protocol over the models in this app.

Mapping:
- transaction()  → transaction.atomic (nested calls are savepoints)
- for_update     → select_for_update
- In / NotIn     → __in filter / exclude
- Gte, Lt, Lte   → __gte, __lt, __lte
- IsNull         → __isnull

Database failures surface as StoreError. A permission denial
from the database (row-level security, missing grant) surfaces
as StorePermissionDenied so callers can stop retrying. A
unique constraint violation surfaces as StoreConflict.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Model, QuerySet
from django.utils import timezone

from adapters.django_store.models import TABLE_MODELS
from core.store.errors import (
    StoreConflict,
    StoreError,
    StorePermissionDenied,
    UnknownTableError,
)
from core.store.filters import IsNull, NotIn, Predicate
from core.store.protocol import Row

logger = logging.getLogger("pos.store")


def _is_permission_denied(exc: DatabaseError) -> bool:
    return "permission denied" in str(exc).lower()


@contextmanager
def _store_errors(table: str, operation: str) -> Iterator[None]:
    try:
        yield
    except StoreError:
        raise
    except IntegrityError as exc:
        raise StoreConflict(table, operation, str(exc)) from exc
    except DatabaseError as exc:
        if _is_permission_denied(exc):
            raise StorePermissionDenied(table, operation, str(exc)) from exc
        logger.error(f"Store {operation} on '{table}' failed: {exc}")
        raise StoreError(f"{operation} on '{table}' failed: {exc}") from exc


def _apply_filters(query: QuerySet, filters: Optional[Mapping[str, Any]]) -> QuerySet:
    for column, expected in (filters or {}).items():
        if not isinstance(expected, Predicate):
            query = query.filter(**{column: expected})
        elif isinstance(expected, NotIn):
            query = query.exclude(**{f"{column}__in": list(expected.values)})
        elif isinstance(expected, IsNull):
            query = query.filter(**{f"{column}__isnull": expected.is_null})
        elif expected.lookup == "in":
            query = query.filter(**{f"{column}__in": list(expected.values)})
        else:
            query = query.filter(**{f"{column}__{expected.lookup}": expected.bound})
    return query


def _to_row(instance: Model) -> Row:
    return {
        field.attname: getattr(instance, field.attname)
        for field in instance._meta.concrete_fields
    }


class DjangoDataStore:
    """DataStore over the Django ORM."""

    def __init__(self, using: Optional[str] = None):
        self._using = using

    @contextmanager
    def transaction(self) -> Iterator["DjangoDataStore"]:
        with transaction.atomic(using=self._using):
            yield self

    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        for_update: bool = False,
    ) -> List[Row]:
        with _store_errors(table, "select"):
            query = _apply_filters(self._objects(table), filters)
            if order_by:
                query = query.order_by(*order_by)
            if for_update:
                query = query.select_for_update()
            if limit is not None:
                query = query[:limit]
            return [dict(row) for row in query.values(*(columns or ()))]

    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]:
        model = self._model(table)
        with _store_errors(table, "insert"), transaction.atomic(using=self._using):
            inserted = []
            for values in rows:
                try:
                    instance = model(**dict(values))
                except TypeError as exc:
                    raise StoreError(f"insert on '{table}': {exc}") from exc
                instance.save(force_insert=True, using=self._using)
                inserted.append(_to_row(instance))
            return inserted

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> List[Row]:
        model = self._model(table)
        values = dict(patch)
        with _store_errors(table, "update"), transaction.atomic(using=self._using):
            ids = list(
                _apply_filters(self._objects(table), filters)
                .select_for_update()
                .values_list("pk", flat=True)
            )
            if not ids:
                return []
            if "updated_at" not in values and _has_field(model, "updated_at"):
                values["updated_at"] = timezone.now()
            self._objects(table).filter(pk__in=ids).update(**values)
            by_id = {
                row["id"]: dict(row)
                for row in self._objects(table).filter(pk__in=ids).values()
            }
            return [by_id[i] for i in ids if i in by_id]

    def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        model = self._model(table)
        with _store_errors(table, "delete"), transaction.atomic(using=self._using):
            _, per_model = _apply_filters(self._objects(table), filters).delete()
            return per_model.get(model._meta.label, 0)

    # ── internals ─────────────────────────────────────────────

    def _model(self, table: str):
        model = TABLE_MODELS.get(table)
        if model is None:
            raise UnknownTableError(table)
        return model

    def _objects(self, table: str) -> QuerySet:
        manager = self._model(table).objects
        return manager.using(self._using) if self._using else manager.all()


def _has_field(model, name: str) -> bool:
    return any(f.attname == name for f in model._meta.concrete_fields)
