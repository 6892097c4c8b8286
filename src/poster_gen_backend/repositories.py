"""
SQLite repositories for layouts, poster templates, assets, posters and orders.

Each repository is a thin CRUD wrapper around ``Database.connection()``:
lookups return ``None`` when a row is absent and the service layer decides
whether that is a ``NotFoundError``. JSON columns are always written
single-encoded.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as SchemaValidationError

from .database import Database, is_row_id
from .errors import ConfigurationError
from .models import (
    AssetView,
    FieldSpec,
    LayoutView,
    LogoView,
    OrderView,
    PosterStatus,
    PosterView,
    TemplateView,
)
from .utils import load_json_column, utcnow


def _serialize_datetime(dt: datetime) -> str:
    return dt.isoformat()


def _deserialize_datetime(s: str) -> datetime:
    return datetime.fromisoformat(s)


def _dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


@dataclass
class LayoutRecord:
    id: int
    name: str
    file_path: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LayoutRecord":
        return cls(
            id=row["id"],
            name=row["name"],
            file_path=row["file_path"],
            created_at=_deserialize_datetime(row["created_at"]),
            updated_at=_deserialize_datetime(row["updated_at"]),
        )

    def to_view(self) -> LayoutView:
        return LayoutView(id=self.id, name=self.name, file_path=self.file_path, created_at=self.created_at)


@dataclass
class TemplateRecord:
    """
    A poster template joined with its layout's file path.

    ``required_fields`` and ``default_customization`` are kept as the stored
    JSON text; they are interpreted per request because the schema is data
    edited by admins, not code.
    """

    id: int
    name: str
    type: str
    layout_id: int
    price: int
    thumbnail_url: Optional[str]
    is_active: bool
    required_fields: str
    default_customization: str
    layout_file_path: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "TemplateRecord":
        return cls(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            layout_id=row["layout_id"],
            price=row["price"],
            thumbnail_url=row["thumbnail_url"],
            is_active=bool(row["is_active"]),
            required_fields=row["required_fields"],
            default_customization=row["default_customization"],
            layout_file_path=row["layout_file_path"],
            created_at=_deserialize_datetime(row["created_at"]),
            updated_at=_deserialize_datetime(row["updated_at"]),
        )

    def parse_required_fields(self) -> List[FieldSpec]:
        """
        Decode the required-field schema.

        Raises:
            ConfigurationError: If the column is not a JSON array of field specs
        """
        try:
            decoded = load_json_column(self.required_fields, "required_fields")
        except ValueError as exc:
            raise ConfigurationError("template configuration error: invalid required fields") from exc
        if decoded is None:
            return []
        if not isinstance(decoded, list):
            raise ConfigurationError("template configuration error: required fields must be a list")
        try:
            return [FieldSpec.model_validate(item) for item in decoded]
        except SchemaValidationError as exc:
            raise ConfigurationError("template configuration error: invalid required fields") from exc

    def parse_default_customization(self) -> Dict[str, Any]:
        """
        Decode the default customization object.

        Raises:
            ConfigurationError: If the column is not a JSON object
        """
        try:
            decoded = load_json_column(self.default_customization, "default_customization")
        except ValueError as exc:
            raise ConfigurationError("invalid template base customization format") from exc
        if decoded is None:
            return {}
        if not isinstance(decoded, dict):
            raise ConfigurationError("invalid template base customization format")
        return decoded

    def to_view(self) -> TemplateView:
        return TemplateView(
            id=self.id,
            name=self.name,
            type=self.type,
            layout_id=self.layout_id,
            layout_file_path=self.layout_file_path,
            price=self.price,
            thumbnail_url=self.thumbnail_url,
            is_active=self.is_active,
            required_fields=self.parse_required_fields(),
            default_customization=self.parse_default_customization(),
        )


@dataclass
class AssetRecord:
    id: int
    name: str
    type: str
    data: str
    default_color: Optional[str]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AssetRecord":
        return cls(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            data=row["data"],
            default_color=row["default_color"],
        )

    def to_view(self) -> AssetView:
        return AssetView(id=self.id, name=self.name, type=self.type, data=self.data, default_color=self.default_color)

    def to_logo_view(self) -> LogoView:
        return LogoView(id=self.id, name=self.name, default_color=self.default_color)


@dataclass
class PosterRecord:
    id: int
    template_id: int
    business_name: str
    user_input_data: str
    final_customization: str
    artifact_url: Optional[str]
    status: PosterStatus
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "PosterRecord":
        return cls(
            id=row["id"],
            template_id=row["template_id"],
            business_name=row["business_name"],
            user_input_data=row["user_input_data"],
            final_customization=row["final_customization"],
            artifact_url=row["artifact_url"],
            status=PosterStatus(row["status"]),
            created_at=_deserialize_datetime(row["created_at"]),
        )

    def to_view(self) -> PosterView:
        return PosterView(
            id=self.id,
            template_id=self.template_id,
            business_name=self.business_name,
            artifact_url=self.artifact_url,
            status=self.status,
            user_input_data=load_json_column(self.user_input_data, "user_input_data") or {},
            created_at=self.created_at,
        )


@dataclass
class OrderRecord:
    id: int
    user_id: int
    order_number: str
    total_amount: int
    status: str
    receipt: Optional[str]
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "OrderRecord":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            order_number=row["order_number"],
            total_amount=row["total_amount"],
            status=row["status"],
            receipt=row["receipt"],
            created_at=_deserialize_datetime(row["created_at"]),
        )

    def to_view(self) -> OrderView:
        return OrderView(
            id=self.id,
            user_id=self.user_id,
            order_number=self.order_number,
            total_amount=self.total_amount,
            status=self.status,
            receipt=self.receipt,
            created_at=self.created_at,
        )


class LayoutRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    def create(self, name: str, file_path: str) -> LayoutRecord:
        now = _serialize_datetime(utcnow())
        with self.database.connection() as conn:
            cursor = conn.execute(
                "INSERT INTO layouts (name, file_path, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (name, file_path, now, now),
            )
            row = conn.execute("SELECT * FROM layouts WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return LayoutRecord.from_row(row)

    def get_by_id(self, layout_id: int) -> Optional[LayoutRecord]:
        if not is_row_id(layout_id):
            return None
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM layouts WHERE id = ?", (layout_id,)).fetchone()
        return LayoutRecord.from_row(row) if row else None

    def get_by_name(self, name: str) -> Optional[LayoutRecord]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM layouts WHERE name = ?", (name,)).fetchone()
        return LayoutRecord.from_row(row) if row else None

    def list_all(self) -> List[LayoutRecord]:
        with self.database.connection() as conn:
            rows = conn.execute("SELECT * FROM layouts ORDER BY name").fetchall()
        return [LayoutRecord.from_row(row) for row in rows]


_TEMPLATE_SELECT = """
    SELECT t.*, l.file_path AS layout_file_path
    FROM poster_templates t
    LEFT JOIN layouts l ON l.id = t.layout_id
"""

# Columns an update may touch, mapped to how their values are stored.
_TEMPLATE_UPDATABLE = {
    "name": lambda v: v,
    "type": lambda v: v,
    "layout_id": lambda v: v,
    "price": lambda v: v,
    "thumbnail_url": lambda v: v,
    "is_active": lambda v: 1 if v else 0,
    "required_fields": _dump_json,
    "default_customization": _dump_json,
}


class TemplateRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    def create(
        self,
        name: str,
        type: str,
        layout_id: int,
        price: int,
        thumbnail_url: Optional[str],
        is_active: bool,
        required_fields: List[Dict[str, Any]],
        default_customization: Dict[str, Any],
    ) -> TemplateRecord:
        now = _serialize_datetime(utcnow())
        with self.database.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO poster_templates (
                    name, type, layout_id, price, thumbnail_url, is_active,
                    required_fields, default_customization, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    name,
                    type,
                    layout_id,
                    price,
                    thumbnail_url,
                    1 if is_active else 0,
                    _dump_json(required_fields),
                    _dump_json(default_customization),
                    now,
                    now,
                ),
            )
            row = conn.execute(f"{_TEMPLATE_SELECT} WHERE t.id = ?", (cursor.lastrowid,)).fetchone()
        return TemplateRecord.from_row(row)

    def get_by_id(self, template_id: int) -> Optional[TemplateRecord]:
        if not is_row_id(template_id):
            return None
        with self.database.connection() as conn:
            row = conn.execute(f"{_TEMPLATE_SELECT} WHERE t.id = ?", (template_id,)).fetchone()
        return TemplateRecord.from_row(row) if row else None

    def list_active(self) -> List[TemplateRecord]:
        with self.database.connection() as conn:
            rows = conn.execute(f"{_TEMPLATE_SELECT} WHERE t.is_active = 1 ORDER BY t.id").fetchall()
        return [TemplateRecord.from_row(row) for row in rows]

    def update(self, template_id: int, changes: Dict[str, Any]) -> bool:
        """
        Apply a partial update.

        Args:
            template_id: The template to update
            changes: Column name to new value; unknown columns are ignored

        Returns:
            True if a row was updated, False if the template does not exist
        """
        if not is_row_id(template_id):
            return False
        updates = []
        values: List[Any] = []
        for column, value in changes.items():
            encode = _TEMPLATE_UPDATABLE.get(column)
            if encode is None:
                continue
            updates.append(f"{column} = ?")
            values.append(encode(value))

        updates.append("updated_at = ?")
        values.append(_serialize_datetime(utcnow()))
        values.append(template_id)

        with self.database.connection() as conn:
            cursor = conn.execute(
                f"UPDATE poster_templates SET {', '.join(updates)} WHERE id = ?",
                values,
            )
            return cursor.rowcount > 0

    def delete(self, template_id: int) -> bool:
        if not is_row_id(template_id):
            return False
        with self.database.connection() as conn:
            cursor = conn.execute("DELETE FROM poster_templates WHERE id = ?", (template_id,))
            return cursor.rowcount > 0


class AssetRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    def create(self, name: str, type: str, data: str, default_color: Optional[str] = None) -> AssetRecord:
        now = _serialize_datetime(utcnow())
        with self.database.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO assets (name, type, data, default_color, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (name, type, data, default_color, now, now),
            )
            row = conn.execute("SELECT * FROM assets WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return AssetRecord.from_row(row)

    def get_by_id(self, asset_id: int) -> Optional[AssetRecord]:
        if not is_row_id(asset_id):
            return None
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM assets WHERE id = ?", (asset_id,)).fetchone()
        return AssetRecord.from_row(row) if row else None

    def list_assets(self, asset_type: Optional[str] = None) -> List[AssetRecord]:
        with self.database.connection() as conn:
            if asset_type:
                rows = conn.execute("SELECT * FROM assets WHERE type = ? ORDER BY id", (asset_type,)).fetchall()
            else:
                rows = conn.execute("SELECT * FROM assets ORDER BY id").fetchall()
        return [AssetRecord.from_row(row) for row in rows]


class PosterRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    def create(
        self,
        template_id: int,
        business_name: str,
        user_input_data: str,
        final_customization: str,
        artifact_url: Optional[str],
        status: PosterStatus = PosterStatus.COMPLETED,
    ) -> PosterRecord:
        now = _serialize_datetime(utcnow())
        with self.database.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO posters (
                    template_id, business_name, user_input_data, final_customization,
                    artifact_url, status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    template_id,
                    business_name,
                    user_input_data,
                    final_customization,
                    artifact_url,
                    status.value,
                    now,
                    now,
                ),
            )
            row = conn.execute("SELECT * FROM posters WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return PosterRecord.from_row(row)

    def get_by_id(self, poster_id: int) -> Optional[PosterRecord]:
        if not is_row_id(poster_id):
            return None
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM posters WHERE id = ?", (poster_id,)).fetchone()
        return PosterRecord.from_row(row) if row else None

    def count(self) -> int:
        with self.database.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM posters").fetchone()[0]

    def delete(self, poster_id: int) -> bool:
        if not is_row_id(poster_id):
            return False
        with self.database.connection() as conn:
            cursor = conn.execute("DELETE FROM posters WHERE id = ?", (poster_id,))
            return cursor.rowcount > 0


class OrderRepository:
    def __init__(self, database: Database) -> None:
        self.database = database

    def create(self, user_id: int, order_number: str, total_amount: int, status: str = "pending") -> OrderRecord:
        now = _serialize_datetime(utcnow())
        with self.database.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO orders (user_id, order_number, total_amount, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, order_number, total_amount, status, now, now),
            )
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return OrderRecord.from_row(row)

    def get_by_id(self, order_id: int) -> Optional[OrderRecord]:
        if not is_row_id(order_id):
            return None
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        return OrderRecord.from_row(row) if row else None

    def update_total(self, order_id: int, total_amount: int) -> bool:
        if not is_row_id(order_id):
            return False
        with self.database.connection() as conn:
            cursor = conn.execute(
                "UPDATE orders SET total_amount = ?, updated_at = ? WHERE id = ?",
                (total_amount, _serialize_datetime(utcnow()), order_id),
            )
            return cursor.rowcount > 0

    def delete(self, order_id: int) -> bool:
        if not is_row_id(order_id):
            return False
        with self.database.connection() as conn:
            cursor = conn.execute("DELETE FROM orders WHERE id = ?", (order_id,))
            return cursor.rowcount > 0
