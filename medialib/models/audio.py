from ..extensions import db
from .base import TimestampMixin
from .asset import MediaAssetMixin


class Audio(db.Model, MediaAssetMixin, TimestampMixin):
    __tablename__ = "audios"
    MODEL = "Audio"
    KIND = "audios"
