"""Domain exceptions raised by the library services.

Direct calls let these propagate; job entrypoints catch them at the task
boundary and turn them into log lines plus an ``on-notification`` event.
"""


class MediaLibraryError(Exception):
    """Base class for every error the library raises on purpose."""


class IngestionError(MediaLibraryError):
    def __init__(self, reason, path=None):
        self.reason = reason
        self.path = path
        super().__init__(f"{reason}: {path}" if path else reason)


class DuplicateContentError(MediaLibraryError):
    def __init__(self, kind, content_hash, existing_id=None):
        self.kind = kind
        self.content_hash = content_hash
        self.existing_id = existing_id
        super().__init__(f"{kind} with md5 {content_hash} is already in the library")


class InvalidTargetTypeError(MediaLibraryError):
    def __init__(self, target_type):
        self.target_type = target_type
        super().__init__(f"invalid target type: {target_type!r}")


class NotFoundError(MediaLibraryError):
    def __init__(self, model, id):
        self.model = model
        self.id = id
        super().__init__(f"{model} {id} not found")


class DownloadError(MediaLibraryError):
    def __init__(self, message, state=None, url=None):
        self.state = state
        self.url = url
        super().__init__(message)


class TranscriptionError(MediaLibraryError):
    pass


class UploadError(MediaLibraryError):
    pass


class SyncError(MediaLibraryError):
    pass


class AssessmentError(MediaLibraryError):
    pass
