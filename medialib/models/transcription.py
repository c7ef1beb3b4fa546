import uuid

from ..extensions import db
from .base import TimestampMixin, SyncMixin, iso

PENDING = "pending"
PROCESSING = "processing"
FINISHED = "finished"
STATES = (PENDING, PROCESSING, FINISHED)


class Transcription(db.Model, SyncMixin, TimestampMixin):
    __tablename__ = "transcriptions"
    MODEL = "Transcription"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    target_id = db.Column(db.String(36), nullable=False)
    target_type = db.Column(db.String(20), nullable=False)
    # the same content is never transcribed twice under different ids
    target_md5 = db.Column(db.String(32), unique=True, nullable=False)
    # processing status: pending -> processing -> finished (failure rolls back to pending)
    state = db.Column(db.Enum(*STATES, name="transcription_state"), default=PENDING, nullable=False)
    engine = db.Column(db.String(50))
    model = db.Column(db.String(100))
    result = db.Column(db.JSON)
    # token of the attempt that owns a processing row; finish and release check it
    attempt_id = db.Column(db.String(36))

    __table_args__ = (
        db.UniqueConstraint("target_id", "target_type", name="uq_transcriptions_target"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "targetId": self.target_id,
            "targetType": self.target_type,
            "targetMd5": self.target_md5,
            "state": self.state,
            "engine": self.engine,
            "model": self.model,
            "result": self.result,
            "isSynced": self.is_synced,
            "syncedAt": iso(self.synced_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
