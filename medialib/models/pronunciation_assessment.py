import uuid

from ..extensions import db
from .base import TimestampMixin, SyncMixin, iso


class PronunciationAssessment(db.Model, SyncMixin, TimestampMixin):
    __tablename__ = "pronunciation_assessments"
    MODEL = "PronunciationAssessment"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    target_id = db.Column(db.String(36), nullable=False)
    target_type = db.Column(db.String(20), nullable=False, default="Recording")
    accuracy_score = db.Column(db.Float, nullable=False)
    completeness_score = db.Column(db.Float, nullable=False)
    fluency_score = db.Column(db.Float, nullable=False)
    pronunciation_score = db.Column(db.Float, nullable=False)
    # depend on the assessment mode
    prosody_score = db.Column(db.Float)
    grammar_score = db.Column(db.Float)
    vocabulary_score = db.Column(db.Float)
    topic_score = db.Column(db.Float)
    reference_text = db.Column(db.Text)
    result = db.Column(db.JSON)

    __table_args__ = (
        db.UniqueConstraint("target_id", "target_type", name="uq_pronunciation_assessments_target"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "targetId": self.target_id,
            "targetType": self.target_type,
            "accuracyScore": self.accuracy_score,
            "completenessScore": self.completeness_score,
            "fluencyScore": self.fluency_score,
            "pronunciationScore": self.pronunciation_score,
            "prosodyScore": self.prosody_score,
            "grammarScore": self.grammar_score,
            "vocabularyScore": self.vocabulary_score,
            "topicScore": self.topic_score,
            "referenceText": self.reference_text,
            "result": self.result,
            "isSynced": self.is_synced,
            "syncedAt": iso(self.synced_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
