"""
Feature Catalogue
Legacy feature set model.

Models:
    - LegacyFeatureSet: frozen snapshot of every real catalogue feature,
      taken when the catalogue generation is replaced.  Never mutated.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import event as _sa_event

from feature_catalogue.models import db


class LegacyFeatureSet(db.Model):
    __tablename__ = "legacy_feature_sets"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    features_json = db.Column(db.Text, nullable=False, comment="JSON list of FeatureEntry.to_dict()")

    assessments = db.relationship("Assessment", lazy="dynamic")

    @property
    def features(self) -> list[dict]:
        """Deserialise *features_json*; a corrupt payload reads as empty."""
        try:
            return json.loads(self.features_json or "[]")
        except (json.JSONDecodeError, TypeError):
            return []

    def to_dict(self, include_features=False) -> dict:
        features = self.features
        d = {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "feature_count": len(features),
        }
        if include_features:
            d["features"] = features
        return d

    def __repr__(self):
        return f"<LegacyFeatureSet {self.id}: {self.name}>"


@_sa_event.listens_for(LegacyFeatureSet, "before_update")
def _reject_legacy_update(mapper, connection, target):
    raise ValueError(f"Legacy feature set {target.id} is immutable")
