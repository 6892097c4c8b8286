"""
Poster generation pipeline and poster record management.

This module turns a template id plus caller input into a stored artifact:
- Template lookup and schema decoding
- Field validation against the template's required-field schema
- Rendering context assembly (defaults, customization, assets, user data)
- HTML rendering and headless-browser rasterization
- Persistence of the poster record with its input and context snapshots

Stages run strictly in that order and any failure aborts the rest; a poster
row is written only after the artifact exists on disk.
Database, Jinja and file work run in the threadpool so one generation does
not block the event loop while another waits on the browser.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from starlette.concurrency import run_in_threadpool

from .context_builder import RenderingContextBuilder
from .errors import AppError, ConfigurationError, InternalError, NotFoundError, ValidationError
from .models import ArtifactMode, PosterInput, PosterStatus, PosterView
from .rasterizer import BrowserRasterizer
from .renderer import TemplateRenderer
from .repositories import AssetRepository, PosterRecord, PosterRepository, TemplateRepository
from .validation import validate_fields

logger = logging.getLogger(__name__)


class PosterRecordWriter:
    """Archives a finished generation as a ``completed`` poster row."""

    def __init__(self, repository: PosterRepository) -> None:
        self.repository = repository

    def save(
        self,
        template_id: int,
        business_name: str,
        raw_input_data: Dict[str, Any],
        final_context: Dict[str, Any],
        artifact_url: str,
    ) -> PosterRecord:
        """
        Persist one poster record.

        Both snapshots are stored as JSON so a generation can be reproduced
        or debugged without re-deriving the merge.

        Raises:
            InternalError: If a snapshot cannot be serialized
            DatabaseError: If the insert fails
        """
        try:
            user_input_json = json.dumps(raw_input_data, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise InternalError("failed to marshal user input data") from exc
        try:
            final_customization_json = json.dumps(final_context, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as exc:
            raise InternalError("failed to marshal final customization data") from exc

        return self.repository.create(
            template_id=template_id,
            business_name=business_name,
            user_input_data=user_input_json,
            final_customization=final_customization_json,
            artifact_url=artifact_url,
            status=PosterStatus.COMPLETED,
        )


class PosterService:
    """
    Coordinates poster generation and retrieval.

    All collaborators are injected; the service holds no per-request state,
    so concurrent generations only share the database and the output
    directory.

    Attributes:
        renderer: HTML renderer for layouts
        rasterizer: Headless-browser artifact producer
        artifact_mode: Whether artifacts are PDFs or PNG images
        public_prefix: URL prefix under which the output directory is served
    """

    def __init__(
        self,
        template_repository: TemplateRepository,
        asset_repository: AssetRepository,
        poster_repository: PosterRepository,
        renderer: TemplateRenderer,
        rasterizer: BrowserRasterizer,
        artifact_mode: ArtifactMode = ArtifactMode.PDF,
        public_prefix: str = "/outputs",
    ) -> None:
        self.template_repository = template_repository
        self.poster_repository = poster_repository
        self.renderer = renderer
        self.rasterizer = rasterizer
        self.artifact_mode = artifact_mode
        self.public_prefix = public_prefix.rstrip("/")
        self.context_builder = RenderingContextBuilder(asset_repository.get_by_id)
        self.record_writer = PosterRecordWriter(poster_repository)

    @contextmanager
    def _stage(self, stage: str, template_id: int, business_name: str) -> Iterator[None]:
        try:
            yield
        except ValidationError:
            raise
        except AppError as exc:
            logger.error(f"Poster generation failed at {stage} (template={template_id}, business='{business_name}'): {exc}")
            raise
        except Exception as exc:
            logger.exception(f"Unexpected failure at {stage} (template={template_id}, business='{business_name}')")
            raise InternalError(f"poster generation failed during {stage}") from exc

    async def generate_poster(self, template_id: int, poster_input: PosterInput) -> PosterView:
        """
        Run the full generation pipeline for one request.

        Args:
            template_id: Template to render
            poster_input: Business name, form data and customization overrides

        Returns:
            PosterView of the stored poster

        Raises:
            NotFoundError: If the template does not exist
            ValidationError: If the data violates the template's field schema;
                ``field_errors`` holds one message per failing field
            ConfigurationError: If the template's stored schema, customization
                or layout is unusable
            RenderError: If the layout fails to render against the context
            RasterizationError: If the browser fails or exceeds the deadline
            DatabaseError: If the poster cannot be stored
        """
        business_name = poster_input.business_name
        logger.info(f"Generating poster with dynamic template {template_id} for '{business_name}'")

        with self._stage("template lookup", template_id, business_name):
            template = await run_in_threadpool(self.template_repository.get_by_id, template_id)
            if template is None:
                raise NotFoundError("template not found")
            if not template.layout_file_path:
                raise ConfigurationError("template configuration incomplete: layout file path missing")
            schema = template.parse_required_fields()

        with self._stage("validation", template_id, business_name):
            field_errors = validate_fields(schema, poster_input.data)
            if field_errors:
                logger.warning(f"Validation failed for template {template_id}: {field_errors}")
                raise ValidationError("invalid input data provided", field_errors)

        with self._stage("context build", template_id, business_name):
            context = await run_in_threadpool(self.context_builder.build, template, poster_input)

        with self._stage("render", template_id, business_name):
            html = await run_in_threadpool(self.renderer.render, context, template.layout_file_path)

        with self._stage("rasterize", template_id, business_name):
            page_setup = self.rasterizer.page_setup.with_overrides(context)
            artifact_path = await self.rasterizer.rasterize(html, business_name, self.artifact_mode, page_setup)

        try:
            with self._stage("persist", template_id, business_name):
                record = await run_in_threadpool(
                    self.record_writer.save,
                    template_id=template.id,
                    business_name=business_name,
                    raw_input_data=poster_input.data,
                    final_context=context,
                    artifact_url=self.artifact_url(artifact_path),
                )
        except AppError:
            # The artifact is unreferenced without its row.
            artifact_path.unlink(missing_ok=True)
            raise

        logger.info(f"Poster {record.id} generated for template {template_id} at {record.artifact_url}")
        return record.to_view()

    def artifact_url(self, path: Path) -> str:
        return f"{self.public_prefix}/{path.name}"

    def _artifact_path(self, artifact_url: Optional[str]) -> Optional[Path]:
        if not artifact_url or not artifact_url.startswith(f"{self.public_prefix}/"):
            return None
        return self.rasterizer.output_dir / Path(artifact_url).name

    def get_poster(self, poster_id: int) -> PosterView:
        logger.info(f"Getting poster by ID {poster_id}")
        record = self.poster_repository.get_by_id(poster_id)
        if record is None:
            logger.warning(f"Poster {poster_id} not found")
            raise NotFoundError("poster not found")
        return record.to_view()

    def delete_poster(self, poster_id: int) -> None:
        """
        Delete a poster row and its artifact file.

        Raises:
            NotFoundError: If the poster does not exist
        """
        record = self.poster_repository.get_by_id(poster_id)
        if record is None:
            raise NotFoundError("poster not found")
        self.poster_repository.delete(poster_id)
        artifact = self._artifact_path(record.artifact_url)
        if artifact is not None:
            artifact.unlink(missing_ok=True)
        logger.info(f"Poster {poster_id} deleted")
