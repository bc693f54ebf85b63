"""
Tests — document generator (Jinja2 templates → PDF).
"""

import hashlib

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.activity import ActivityLog
from app.models.auth import User
from app.models.document import GeneratedDocument
from app.services import document_service, pdf_renderer

FIXED = "2026-01-15T10:00:00+00:00"

WELCOME_DATA = {
    "project": {"name": "Acme <Rebrand>"},
    "client": {"full_name": "Casey Client"},
    "services": [{"display_name": "Graphic Design", "description": "Logo and palette"}],
    "phases": [{"label": "Onboarding", "requires_approval": True}, {"label": "Ideation"}],
    "generated_at": FIXED,
}


@pytest.fixture(scope="module")
def chromium():
    """Skip printing tests on hosts without the browser (`playwright install chromium`)."""
    try:
        with sync_playwright() as pw:
            pw.chromium.launch(headless=True).close()
    except PlaywrightError as exc:
        pytest.skip(f"headless Chromium unavailable: {exc}")


def test_list_templates_hides_layouts():
    assert document_service.list_templates() == ["launch_certificate", "phase_summary", "welcome_packet"]


def test_render_html_inlines_stylesheet_and_escapes():
    html = document_service.render_html("welcome_packet", WELCOME_DATA)
    assert "<style>" in html
    assert 'href="pdf.css"' not in html
    assert "Acme &lt;Rebrand&gt;" in html
    assert "Casey Client" in html
    assert FIXED in html


def test_render_html_tolerates_missing_data():
    html = document_service.render_html("phase_summary", {}, generated_at=FIXED)
    assert "<h1>" in html


def test_render_html_accepts_suffix():
    a = document_service.render_html("welcome_packet.html", WELCOME_DATA)
    b = document_service.render_html("welcome_packet", WELCOME_DATA)
    assert a == b


@pytest.mark.parametrize("name", ["../secrets", "a/b", "a\\b"])
def test_path_separators_are_rejected(name):
    with pytest.raises(ValidationError):
        document_service.render_html(name, {})


@pytest.mark.parametrize("name", ["nope", "_base"])
def test_unknown_or_layout_template_is_not_found(name):
    with pytest.raises(NotFoundError):
        document_service.render_html(name, {})


def test_pdf_output_is_deterministic(chromium):
    html = document_service.render_html("welcome_packet", WELCOME_DATA)
    first = document_service.render_pdf(html)
    second = document_service.render_pdf(html)
    assert first.startswith(b"%PDF")
    assert first == second


def test_stylesheet_changes_printed_output(chromium, tmp_path, monkeypatch):
    plain = document_service.render_pdf(document_service.render_html("welcome_packet", WELCOME_DATA))

    with open(document_service.STYLESHEET_PATH, encoding="utf-8") as fh:
        base_css = fh.read()
    loud_css = tmp_path / "pdf.css"
    loud_css.write_text(base_css + "\nh1 { color: #ff0000; font-size: 40pt; }\n", encoding="utf-8")
    monkeypatch.setattr(document_service, "STYLESHEET_PATH", str(loud_css))

    styled_html = document_service.render_html("welcome_packet", WELCOME_DATA)
    assert "font-size: 40pt" in styled_html
    assert document_service.render_pdf(styled_html) != plain


def test_stabilize_pins_dates_and_document_id():
    raw = (b"%PDF-1.4\n<< /CreationDate (D:20260115103000+00'00') "
           b"/ModDate (D:20260115103001+00'00') >>\n"
           b"trailer << /ID [<0123ABCD> <89EF4567>] >>\n")
    out = pdf_renderer._stabilize(raw, "<h1>x</h1>")

    assert len(out) == len(raw)
    assert out.count(b"D:19700101000000") == 2
    assert b"20260115" not in out
    assert b"0123ABCD" not in out
    assert out == pdf_renderer._stabilize(raw.replace(b"0123ABCD", b"FFFF0000"), "<h1>x</h1>")
    assert out != pdf_renderer._stabilize(raw, "<h1>y</h1>")


def test_render_document_records_audit_row(chromium, project, client_user):
    pdf = document_service.render_document(
        "phase_summary",
        {"project": {"name": "Acme"}, "generated_at": FIXED},
        project_id=project["id"],
        doc_type="phase_summary",
        user_id=client_user.id,
    )
    doc = GeneratedDocument.query.one()
    assert doc.sha256 == hashlib.sha256(pdf).hexdigest()
    assert doc.size_bytes == len(pdf)
    assert doc.created_by == client_user.id
    entry = ActivityLog.query.filter_by(action="document_generated").one()
    assert entry.details["document_id"] == doc.id


def test_render_document_without_project_is_not_audited(chromium):
    pdf = document_service.render_document("launch_certificate", {"generated_at": FIXED})
    assert pdf.startswith(b"%PDF")
    assert GeneratedDocument.query.count() == 0


def test_render_document_unknown_project():
    with pytest.raises(NotFoundError):
        document_service.render_document("phase_summary", {}, project_id="nope", doc_type="phase_summary")


def test_render_document_rejects_other_clients_project(project):
    stranger = User(email="stranger@example.com", role="client")
    db.session.add(stranger)
    db.session.commit()

    with pytest.raises(NotFoundError):
        document_service.render_document(
            "phase_summary", {}, project_id=project["id"], doc_type="phase_summary",
            user_id=stranger.id, actor_role="client",
        )
    assert GeneratedDocument.query.count() == 0
    assert ActivityLog.query.filter_by(action="document_generated").count() == 0


# ── HTTP API ─────────────────────────────────────────────────────────────


def test_render_endpoint_returns_pdf(chromium, client):
    res = client.post("/api/v1/documents/render", json={"template": "welcome_packet", "data": WELCOME_DATA})
    assert res.status_code == 200
    assert res.mimetype == "application/pdf"
    assert res.data.startswith(b"%PDF")
    assert "welcome_packet.pdf" in res.headers["Content-Disposition"]


def test_render_endpoint_html_preview(client):
    res = client.post("/api/v1/documents/render",
                      json={"template": "welcome_packet", "data": WELCOME_DATA, "format": "html"})
    assert res.status_code == 200
    assert res.mimetype == "text/html"
    assert b"Casey Client" in res.data


def test_render_endpoint_unknown_template(client):
    res = client.post("/api/v1/documents/render", json={"template": "missing"})
    assert res.status_code == 404


def test_render_endpoint_path_separator(client):
    res = client.post("/api/v1/documents/render", json={"template": "../x"})
    assert res.status_code == 422


def test_render_endpoint_requires_template(client):
    res = client.post("/api/v1/documents/render", json={"data": {}})
    assert res.status_code == 400


def test_templates_endpoint(client):
    res = client.get("/api/v1/documents/templates")
    assert res.get_json()["templates"] == ["launch_certificate", "phase_summary", "welcome_packet"]


@pytest.mark.parametrize("field, value", [("project_id", 42), ("doc_type", ["phase_summary"])])
def test_render_endpoint_rejects_non_string_ids(client, field, value):
    res = client.post("/api/v1/documents/render", json={"template": "phase_summary", field: value})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
