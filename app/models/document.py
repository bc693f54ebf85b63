"""
Studio Client Portal
Generated document audit model.
"""

from datetime import datetime, timezone

from app.models import db

DOC_TYPES = {"welcome_packet", "phase_summary", "launch_certificate", "other"}


class GeneratedDocument(db.Model):
    """
    One rendered PDF.

    The bytes are returned to the caller and not stored; the digest and size
    identify the exact output for later comparison.
    """

    __tablename__ = "generated_documents"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    doc_type = db.Column(db.String(50), nullable=False)
    template = db.Column(db.String(100), nullable=False)
    sha256 = db.Column(db.String(64), nullable=False)
    size_bytes = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "doc_type": self.doc_type,
            "template": self.template,
            "sha256": self.sha256,
            "size_bytes": self.size_bytes,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<GeneratedDocument {self.id}: {self.template} for {self.project_id}>"
