from ..extensions import db
from .base import TimestampMixin
from .asset import MediaAssetMixin


class Video(db.Model, MediaAssetMixin, TimestampMixin):
    __tablename__ = "videos"
    MODEL = "Video"
    KIND = "videos"
