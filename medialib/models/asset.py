import os
import uuid

from ..extensions import db
from ..services.storage import library_path
from .base import UploadMixin, iso

AUDIO_FORMATS = ("mp3", "wav", "m4a", "aac", "flac", "ogg", "oga", "opus", "wma", "aiff", "amr")
VIDEO_FORMATS = ("mp4", "m4v", "mkv", "mov", "avi", "webm", "flv", "wmv", "mpeg", "mpg", "3gp")


def format_of(path):
    return os.path.splitext(path)[1].lstrip(".").lower()


def generate_id(user_id, md5):
    """Same user + same content always gives the same asset id."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{user_id}/{md5}"))


class MediaAssetMixin(UploadMixin):
    """Columns and behaviour shared by Audio and Video.

    Subclasses set ``MODEL`` (the target-type tag) and ``KIND`` (the library
    directory name).
    """
    MODEL = None
    KIND = None

    id = db.Column(db.String(36), primary_key=True)
    source = db.Column(db.String(2048))
    md5 = db.Column(db.String(32), unique=True, nullable=False)
    name = db.Column(db.String(255))
    description = db.Column(db.Text)
    # "metadata" is reserved on declarative classes
    media_metadata = db.Column("metadata", db.JSON, default=dict)
    cover_url = db.Column(db.String(2048))
    recordings_count = db.Column(db.Integer, default=0, nullable=False)
    recordings_duration = db.Column(db.Integer, default=0, nullable=False)

    @property
    def extname(self):
        return (self.media_metadata or {}).get("extname") or os.path.splitext(self.source or "")[1] or ""

    @property
    def filename(self):
        return f"{self.md5}{self.extname}"

    @property
    def file_path(self):
        return library_path(self.KIND, self.filename)

    @property
    def src(self):
        return f"enjoy://library/{self.KIND}/{self.filename}"

    @property
    def transcription(self):
        from .transcription import Transcription
        return Transcription.query.filter_by(target_id=self.id, target_type=self.MODEL).first()

    @property
    def transcribing(self):
        tr = self.transcription
        return bool(tr and tr.state == "processing")

    @property
    def transcribed(self):
        tr = self.transcription
        return bool(tr and tr.state == "finished")

    def to_dict(self, include_transcription=True):
        data = {
            "id": self.id,
            "source": self.source,
            "md5": self.md5,
            "name": self.name,
            "description": self.description,
            "metadata": self.media_metadata or {},
            "coverUrl": self.cover_url,
            "recordingsCount": self.recordings_count,
            "recordingsDuration": self.recordings_duration,
            "src": self.src,
            "isSynced": self.is_synced,
            "isUploaded": self.is_uploaded,
            "syncedAt": iso(self.synced_at),
            "uploadedAt": iso(self.uploaded_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if include_transcription:
            tr = self.transcription
            data["transcribing"] = bool(tr and tr.state == "processing")
            data["transcribed"] = bool(tr and tr.state == "finished")
            data["transcription"] = tr.to_dict() if tr else None
        return data
