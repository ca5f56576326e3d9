"""
Document store gateway.

Typed create/read/query/update/delete over the ``users``, ``items`` and
``ngo_requests`` collections, plus the per-user singleton ``carts`` and
``wishlists`` documents and a small blob store for uploads.

Every call returns a :class:`errors.Result`; database failures are logged,
rolled back and handed back as ``StoreError`` instead of being raised.
"""
import random
import string
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Dict, Generic, List, Optional, Type, TypeVar

import structlog
from fastapi import Depends
from sqlalchemy import func, insert, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

import config
from db import SessionDep
from errors import ConflictError, NotFoundError, Result, StoreError
from models import Cart, Credential, Item, NGORequest, UserProfile, Wishlist

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def generate_id() -> str:
    """Timestamp in base 36 followed by a random suffix."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=11))
    return _base36(now_ms()) + suffix


class Collection(Generic[ModelT]):
    def __init__(self, session: Session, model: Type[ModelT], name: str):
        self.session = session
        self.model = model
        self.name = name

    def _fail(self, operation: str, exc: Exception) -> Result:
        self.session.rollback()
        logger.error(
            "store_call_failed",
            collection=self.name,
            operation=operation,
            error=str(exc),
        )
        return Result.failure(StoreError(f"Error during {operation} on {self.name}"))

    def _column(self, name: str):
        if name not in self.model.__table__.columns.keys():
            raise StoreError(f"Unknown field '{name}' on {self.name}")
        return getattr(self.model, name)

    def _where(self, stmt, filters: Optional[Dict[str, Any]]):
        # absent (None) filters are no-ops; each present one narrows further
        for name, value in (filters or {}).items():
            if value is None:
                continue
            stmt = stmt.where(self._column(name) == value)
        return stmt

    def create(self, entity: ModelT) -> Result:
        try:
            stored = self.session.merge(entity)
            self.session.commit()
            self.session.refresh(stored)
        except SQLAlchemyError as exc:
            return self._fail("create", exc)
        return Result.success(stored)

    def get_by_id(self, entity_id: str) -> Result:
        try:
            entity = self.session.get(self.model, entity_id)
        except SQLAlchemyError as exc:
            return self._fail("get", exc)
        if entity is None:
            return Result.failure(NotFoundError(f"{self.name} document {entity_id} not found"))
        return Result.success(entity)

    def query(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        order: str = "desc",
        limit: Optional[int] = None,
    ) -> Result:
        try:
            stmt = self._where(select(self.model), filters)
            if order_by:
                column = self._column(order_by)
                stmt = stmt.order_by(column.desc() if order == "desc" else column.asc())
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = list(self.session.exec(stmt).all())
        except StoreError as exc:
            logger.error("store_query_rejected", collection=self.name, error=exc.message)
            return Result.failure(exc)
        except SQLAlchemyError as exc:
            return self._fail("query", exc)
        return Result.success(rows)

    def count(self, filters: Optional[Dict[str, Any]] = None) -> Result:
        try:
            stmt = self._where(select(func.count()).select_from(self.model), filters)
            total = self.session.exec(stmt).one()
        except StoreError as exc:
            return Result.failure(exc)
        except SQLAlchemyError as exc:
            return self._fail("count", exc)
        return Result.success(int(total))

    def update(self, entity_id: str, fields: Dict[str, Any]) -> Result:
        try:
            entity = self.session.get(self.model, entity_id)
            if entity is None:
                return Result.failure(NotFoundError(f"{self.name} document {entity_id} not found"))
            for name, value in fields.items():
                self._column(name)
                setattr(entity, name, value)
            self.session.add(entity)
            self.session.commit()
            self.session.refresh(entity)
        except StoreError as exc:
            return Result.failure(exc)
        except SQLAlchemyError as exc:
            return self._fail("update", exc)
        return Result.success(entity)

    def delete(self, entity_id: str) -> Result:
        try:
            entity = self.session.get(self.model, entity_id)
            if entity is None:
                return Result.failure(NotFoundError(f"{self.name} document {entity_id} not found"))
            self.session.delete(entity)
            self.session.commit()
        except SQLAlchemyError as exc:
            return self._fail("delete", exc)
        return Result.success(None)


@dataclass
class ListDocument:
    """Contents of a cart or wishlist document."""

    items: List[dict] = field(default_factory=list)
    version: int = 0


class DocumentStore:
    def __init__(self, session: Session, media_root: str = config.MEDIA_ROOT):
        self.session = session
        self.media_root = Path(media_root)
        self.credentials = Collection(session, Credential, "credentials")
        self.users = Collection(session, UserProfile, "users")
        self.items = Collection(session, Item, "items")
        self.ngo_requests = Collection(session, NGORequest, "ngo_requests")

    # -- singleton list documents -------------------------------------------

    def _get_list(self, model, name: str, user_id: str) -> Result:
        try:
            doc = self.session.get(model, user_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("store_call_failed", collection=name, operation="get", error=str(exc))
            return Result.failure(StoreError(f"Error loading {name}"))
        if doc is None:
            return Result.success(ListDocument())
        return Result.success(ListDocument(items=list(doc.items or []), version=doc.version))

    def _save_list(
        self,
        model,
        name: str,
        user_id: str,
        items: List[dict],
        expected_version: Optional[int],
    ) -> Result:
        """
        Replace the whole document. With ``expected_version`` the write only
        lands if nobody else wrote since that version was read.
        """
        items = list(items)
        stamp = now_ms()
        try:
            if expected_version is None:
                doc = self.session.get(model, user_id)
                if doc is None:
                    doc = model(user_id=user_id, version=0)
                doc.items = items
                doc.updated_at = stamp
                doc.version = (doc.version or 0) + 1
                self.session.add(doc)
                self.session.commit()
                return Result.success(ListDocument(items=items, version=doc.version))

            if expected_version == 0:
                self.session.execute(
                    insert(model).values(user_id=user_id, items=items, updated_at=stamp, version=1)
                )
                self.session.commit()
                return Result.success(ListDocument(items=items, version=1))

            stmt = (
                update(model)
                .where(model.user_id == user_id, model.version == expected_version)
                .values(items=items, updated_at=stamp, version=expected_version + 1)
                .execution_options(synchronize_session=False)
            )
            written = self.session.execute(stmt).rowcount
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            written = 0
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("store_call_failed", collection=name, operation="save", error=str(exc))
            return Result.failure(StoreError(f"Error saving {name}"))

        if not written:
            logger.warning("store_write_conflict", collection=name, user_id=user_id)
            return Result.failure(ConflictError(f"Your {name[:-1]} changed on another device"))
        return Result.success(ListDocument(items=items, version=expected_version + 1))

    def get_cart(self, user_id: str) -> Result:
        return self._get_list(Cart, "carts", user_id)

    def save_cart(self, user_id: str, items: List[dict], expected_version: Optional[int] = None) -> Result:
        return self._save_list(Cart, "carts", user_id, items, expected_version)

    def get_wishlist(self, user_id: str) -> Result:
        return self._get_list(Wishlist, "wishlists", user_id)

    def save_wishlist(
        self, user_id: str, items: List[dict], expected_version: Optional[int] = None
    ) -> Result:
        return self._save_list(Wishlist, "wishlists", user_id, items, expected_version)

    # -- blob store -----------------------------------------------------------

    def upload(self, data: bytes, path: str) -> Result:
        root = self.media_root.resolve()
        target = (root / path).resolve()
        if root not in target.parents:
            return Result.failure(StoreError("Invalid upload path"))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("store_call_failed", collection="media", operation="upload", error=str(exc))
            return Result.failure(StoreError("Error uploading file"))
        return Result.success(f"/media/{target.relative_to(root).as_posix()}")


def get_store(session: SessionDep) -> DocumentStore:
    return DocumentStore(session)


StoreDep = Annotated[DocumentStore, Depends(get_store)]
