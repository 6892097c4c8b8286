"""
Catalog services: poster templates, layouts, assets/logos and orders.

These are plain CRUD siblings of the generation pipeline. Each service wraps
one repository and turns absent rows into ``NotFoundError``; ``PosterCatalog``
groups them so the HTTP layer has a single handle.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from .database import Database
from .errors import NotFoundError, ValidationError
from .models import (
    AssetCreate,
    AssetView,
    LayoutCreate,
    LayoutView,
    LogoView,
    OrderCreate,
    OrderView,
    TemplateCreate,
    TemplateUpdate,
    TemplateView,
)
from .repositories import (
    AssetRepository,
    LayoutRepository,
    OrderRecord,
    OrderRepository,
    TemplateRepository,
)

logger = logging.getLogger(__name__)

LOGO_ASSET_TYPE = "logo"


class LayoutService:
    def __init__(self, repository: LayoutRepository) -> None:
        self.repository = repository

    def create_layout(self, request: LayoutCreate) -> LayoutView:
        record = self.repository.create(request.name, request.file_path)
        logger.info(f"Layout {record.id} '{record.name}' created for {record.file_path}")
        return record.to_view()

    def get_layout(self, layout_id: int) -> LayoutView:
        record = self.repository.get_by_id(layout_id)
        if record is None:
            raise NotFoundError("layout not found")
        return record.to_view()

    def list_layouts(self) -> List[LayoutView]:
        return [record.to_view() for record in self.repository.list_all()]


class TemplateService:
    def __init__(self, repository: TemplateRepository, layouts: LayoutRepository) -> None:
        self.repository = repository
        self.layouts = layouts

    def _require_layout(self, layout_id: int) -> None:
        if self.layouts.get_by_id(layout_id) is None:
            raise ValidationError("invalid template data", {"layout_id": "Layout does not exist."})

    def create_template(self, request: TemplateCreate) -> TemplateView:
        """
        Store a new template.

        Raises:
            ValidationError: If ``layout_id`` names no layout
            ConflictError: If the template name is taken
        """
        self._require_layout(request.layout_id)
        record = self.repository.create(
            name=request.name,
            type=request.type,
            layout_id=request.layout_id,
            price=request.price,
            thumbnail_url=request.thumbnail_url,
            is_active=request.is_active,
            required_fields=[spec.model_dump(exclude_none=True) for spec in request.required_fields],
            default_customization=request.default_customization,
        )
        logger.info(f"Template {record.id} '{record.name}' created")
        return record.to_view()

    def get_template(self, template_id: int) -> TemplateView:
        record = self.repository.get_by_id(template_id)
        if record is None:
            raise NotFoundError("template not found")
        return record.to_view()

    def list_active_templates(self) -> List[TemplateView]:
        return [record.to_view() for record in self.repository.list_active()]

    def update_template(self, template_id: int, request: TemplateUpdate) -> TemplateView:
        """Apply only the fields the caller actually sent."""
        # Only thumbnail_url may be cleared; null elsewhere means "leave as is".
        changes = {
            key: value
            for key, value in request.model_dump(exclude_unset=True).items()
            if value is not None or key == "thumbnail_url"
        }
        if "required_fields" in changes:
            changes["required_fields"] = [
                spec.model_dump(exclude_none=True) for spec in (request.required_fields or [])
            ]
        if changes.get("layout_id") is not None:
            self._require_layout(changes["layout_id"])

        if not self.repository.update(template_id, changes):
            raise NotFoundError("template not found")
        logger.info(f"Template {template_id} updated ({', '.join(sorted(changes)) or 'no fields'})")
        return self.get_template(template_id)

    def delete_template(self, template_id: int) -> None:
        if not self.repository.delete(template_id):
            raise NotFoundError("template not found")
        logger.info(f"Template {template_id} deleted")


class AssetService:
    def __init__(self, repository: AssetRepository) -> None:
        self.repository = repository

    def create_asset(self, request: AssetCreate) -> AssetView:
        record = self.repository.create(request.name, request.type, request.data, request.default_color)
        logger.info(f"Asset {record.id} '{record.name}' ({record.type}) created")
        return record.to_view()

    def get_asset(self, asset_id: int) -> AssetView:
        record = self.repository.get_by_id(asset_id)
        if record is None:
            raise NotFoundError("asset not found")
        return record.to_view()

    def list_assets(self, asset_type: Optional[str] = None) -> List[AssetView]:
        return [record.to_view() for record in self.repository.list_assets(asset_type)]

    def get_logos(self) -> List[LogoView]:
        return [record.to_logo_view() for record in self.repository.list_assets(LOGO_ASSET_TYPE)]


class OrderService:
    """Orders are visible only to the user who placed them, or to admins."""

    def __init__(self, repository: OrderRepository) -> None:
        self.repository = repository

    @staticmethod
    def _order_number(user_id: int) -> str:
        return f"ORD-{user_id}-{int(time.time())}"

    def _owned(self, order_id: int, user_id: int, is_admin: bool) -> OrderRecord:
        record = self.repository.get_by_id(order_id)
        if record is None or (record.user_id != user_id and not is_admin):
            raise NotFoundError("order not found")
        return record

    def create_order(self, user_id: int, request: OrderCreate) -> OrderView:
        record = self.repository.create(user_id, self._order_number(user_id), request.total_amount)
        logger.info(f"Order {record.order_number} created for user {user_id}")
        return record.to_view()

    def get_order(self, order_id: int, user_id: int, is_admin: bool = False) -> OrderView:
        return self._owned(order_id, user_id, is_admin).to_view()

    def update_order(self, order_id: int, user_id: int, request: OrderCreate, is_admin: bool = False) -> OrderView:
        self._owned(order_id, user_id, is_admin)
        if not self.repository.update_total(order_id, request.total_amount):
            raise NotFoundError("order not found")
        return self.get_order(order_id, user_id, is_admin)

    def delete_order(self, order_id: int, user_id: int, is_admin: bool = False) -> None:
        self._owned(order_id, user_id, is_admin)
        self.repository.delete(order_id)
        logger.info(f"Order {order_id} deleted")


class PosterCatalog:
    """Groups the catalog services over one database."""

    def __init__(self, database: Database) -> None:
        layout_repository = LayoutRepository(database)
        self.template_repository = TemplateRepository(database)
        self.asset_repository = AssetRepository(database)

        self.layouts = LayoutService(layout_repository)
        self.templates = TemplateService(self.template_repository, layout_repository)
        self.assets = AssetService(self.asset_repository)
        self.orders = OrderService(OrderRepository(database))
