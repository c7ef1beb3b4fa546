import uuid

from ..extensions import db
from ..services.storage import library_path
from .base import TimestampMixin, UploadMixin, iso

TARGET_TYPES = ("Audio", "Video", "Message")


class Recording(db.Model, UploadMixin, TimestampMixin):
    """A short clip the user recorded against an Audio, Video or Message."""
    __tablename__ = "recordings"
    MODEL = "Recording"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    target_id = db.Column(db.String(36), nullable=False, index=True)
    target_type = db.Column(db.String(20), nullable=False)
    md5 = db.Column(db.String(32), unique=True, nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    duration = db.Column(db.Integer, default=0, nullable=False)  # ms
    reference_id = db.Column(db.Integer)
    reference_text = db.Column(db.Text)

    __table_args__ = (
        db.CheckConstraint("duration >= 0", name="ck_recordings_duration_non_negative"),
        db.Index("ix_recordings_target", "target_type", "target_id"),
    )

    @property
    def file_path(self):
        return library_path("recordings", self.filename)

    @property
    def src(self):
        return f"enjoy://library/recordings/{self.filename}"

    @property
    def pronunciation_assessment(self):
        from .pronunciation_assessment import PronunciationAssessment
        return PronunciationAssessment.query.filter_by(target_id=self.id, target_type=self.MODEL).first()

    def to_dict(self):
        pa = self.pronunciation_assessment
        return {
            "id": self.id,
            "targetId": self.target_id,
            "targetType": self.target_type,
            "md5": self.md5,
            "filename": self.filename,
            "duration": self.duration,
            "referenceId": self.reference_id,
            "referenceText": self.reference_text,
            "src": self.src,
            "pronunciationAssessment": pa.to_dict() if pa else None,
            "isSynced": self.is_synced,
            "isUploaded": self.is_uploaded,
            "syncedAt": iso(self.synced_at),
            "uploadedAt": iso(self.uploaded_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
