"""
Document generator — Jinja2 document templates rendered to PDF.

Templates live in ``app/templates/documents/``; names starting with ``_``
are layouts, not selectable documents.  Each template links the shared
``pdf.css``, which is inlined into the HTML so the print engine applies it.

    render_html(template, data)          → HTML string
    render_pdf(html)                     → PDF bytes (deterministic)
    render_document(template, data, ...) → PDF bytes (+ audit row when a
                                           project id and doc type are given)
"""

from __future__ import annotations

import hashlib
import logging
import os
from datetime import datetime, timezone

from jinja2 import (
    ChainableUndefined,
    Environment,
    FileSystemLoader,
    TemplateNotFound,
    select_autoescape,
)

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.document import DOC_TYPES, GeneratedDocument
from app.models.project import Project
from app.services.activity_service import record_activity
from app.services.pdf_renderer import render_pdf as _print_pdf

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "documents")
STYLESHEET = "pdf.css"
STYLESHEET_PATH = os.path.join(TEMPLATE_DIR, STYLESHEET)
STYLESHEET_LINK = f'<link rel="stylesheet" href="{STYLESHEET}">'
TEMPLATE_SUFFIX = ".html"

_env: Environment | None = None


def _environment() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html"]),
            undefined=ChainableUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _env


def _resolve_name(template: str) -> str:
    """Validate a template name and return its file name."""
    if not template or not isinstance(template, str):
        raise ValidationError("template is required", details={"template": "required"})
    if "/" in template or "\\" in template or ".." in template or os.sep in template:
        raise ValidationError(
            "Template name must not contain path separators",
            details={"template": template},
        )
    name = template if template.endswith(TEMPLATE_SUFFIX) else template + TEMPLATE_SUFFIX
    if name.startswith("_"):
        raise NotFoundError(resource="Template", resource_id=template)
    return name


def list_templates() -> list[str]:
    """Selectable document template names (without suffix), sorted."""
    return sorted(
        name[: -len(TEMPLATE_SUFFIX)]
        for name in _environment().list_templates(extensions=["html"])
        if not name.startswith("_") and "/" not in name
    )


def _inline_stylesheet(html: str) -> str:
    with open(STYLESHEET_PATH, encoding="utf-8") as fh:
        css = fh.read()
    return html.replace(STYLESHEET_LINK, f"<style>{css}</style>")


def render_html(template: str, data: dict | None = None, *, generated_at: str | None = None) -> str:
    """Render a document template to HTML with the stylesheet inlined.

    ``generated_at`` is taken from *data*, then the keyword, then the
    current UTC time.

    Raises:
        ValidationError: bad template name.
        NotFoundError:   no such template.
    """
    name = _resolve_name(template)
    try:
        compiled = _environment().get_template(name)
    except TemplateNotFound:
        raise NotFoundError(resource="Template", resource_id=template) from None

    context = dict(data or {})
    context.setdefault(
        "generated_at",
        generated_at or datetime.now(timezone.utc).replace(microsecond=0).isoformat(),
    )
    return _inline_stylesheet(compiled.render(**context))


def render_pdf(html: str) -> bytes:
    """Print HTML to PDF bytes."""
    return _print_pdf(html)


def render_document(
    template: str,
    data: dict | None = None,
    project_id: str | None = None,
    doc_type: str | None = None,
    *,
    user_id: int | None = None,
    actor_role: str = "admin",
) -> bytes:
    """Render a template straight to PDF.

    When both *project_id* and *doc_type* are given, a GeneratedDocument
    row and a ``document_generated`` activity record are committed.
    A client may only name their own project.

    Raises:
        ValidationError, NotFoundError (template, or a project that is
        missing or belongs to another client).
    """
    if doc_type and doc_type not in DOC_TYPES:
        raise ValidationError(f"Unknown document type '{doc_type}'", details={"doc_type": doc_type})
    if project_id is not None:
        project = db.session.get(Project, project_id)
        if project is None or (actor_role != "admin" and project.client_id != user_id):
            raise NotFoundError(resource="Project", resource_id=project_id)
    audit = bool(project_id and doc_type)

    html = render_html(template, data)
    pdf = render_pdf(html)

    if audit:
        digest = hashlib.sha256(pdf).hexdigest()
        doc = GeneratedDocument(
            project_id=project_id,
            doc_type=doc_type,
            template=template,
            sha256=digest,
            size_bytes=len(pdf),
            created_by=user_id,
        )
        db.session.add(doc)
        db.session.flush()
        record_activity(
            project_id, "document_generated",
            user_id=user_id,
            description=f"Generated {doc_type} document",
            details={"document_id": doc.id, "template": template, "sha256": digest},
        )
        db.session.commit()
        logger.info("Document generated", extra={"project_id": project_id, "template": template})

    return pdf
