"""
Feature Catalogue
Assessment domain model.

Models:
    - Assessment: one response set over a catalogue generation.  Flagged
      ``legacy`` and linked to the archived LegacyFeatureSet when the
      catalogue it was answered against is replaced.
    - AssessmentResponse: one answer per feature per assessment.
"""

from datetime import datetime, timezone

from feature_catalogue.models import db

RESPONSE_VALUES = ("yes", "no", "maybe")


def _utcnow():
    return datetime.now(timezone.utc)


class Assessment(db.Model):
    __tablename__ = "assessments"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(6), unique=True, nullable=False, comment="human-shareable resume token")
    user_name = db.Column(db.String(200))
    service_name = db.Column(db.String(200))
    service_type = db.Column(db.String(100))
    legacy = db.Column(db.Boolean, nullable=False, default=False)
    legacy_feature_set_id = db.Column(
        db.Integer,
        db.ForeignKey("legacy_feature_sets.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    responses = db.relationship(
        "AssessmentResponse", back_populates="assessment",
        lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "user_name": self.user_name,
            "service_name": self.service_name,
            "service_type": self.service_type,
            "legacy": bool(self.legacy),
            "legacy_feature_set_id": self.legacy_feature_set_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Assessment {self.code}{' (legacy)' if self.legacy else ''}>"


class AssessmentResponse(db.Model):
    __tablename__ = "assessment_responses"
    __table_args__ = (
        db.UniqueConstraint("assessment_id", "feature_id", name="uq_assessment_response_feature"),
        db.Index("idx_assessment_response_component", "assessment_id", "component_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(
        db.Integer,
        db.ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
    )
    component_code = db.Column(db.String(20), nullable=False)
    feature_id = db.Column(db.String(40), nullable=False, comment="FeatureEntry.unique_id")
    response = db.Column(db.String(20), nullable=False)

    assessment = db.relationship("Assessment", back_populates="responses")

    def to_dict(self):
        return {
            "assessment_id": self.assessment_id,
            "component_code": self.component_code,
            "feature_id": self.feature_id,
            "response": self.response,
        }
