from datetime import datetime, timezone

from ..extensions import db


def utcnow():
    """Naive UTC now; SQLite drops tzinfo so every timestamp stays naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value):
    return value.isoformat() if value else None


class TimestampMixin:
    # python-side defaults keep microsecond precision for synced_at >= updated_at checks
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SyncMixin:
    synced_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_synced(self):
        return bool(self.synced_at) and self.synced_at >= self.updated_at

    def mark_synced(self, when=None):
        # updated_at is written explicitly so the onupdate hook does not move it past synced_at
        when = when or utcnow()
        self.synced_at = when
        self.updated_at = when


class UploadMixin(SyncMixin):
    uploaded_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_uploaded(self):
        return bool(self.uploaded_at)
