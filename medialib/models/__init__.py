from .audio import Audio
from .video import Video
from .recording import Recording
from .transcription import Transcription
from .pronunciation_assessment import PronunciationAssessment

from ..errors import InvalidTargetTypeError

# closed set of transcribable target types
ASSET_MODELS = {
    "Audio": Audio,
    "Video": Video,
}

MODELS = {
    "Audio": Audio,
    "Video": Video,
    "Recording": Recording,
    "Transcription": Transcription,
    "PronunciationAssessment": PronunciationAssessment,
}


def asset_model(target_type):
    try:
        return ASSET_MODELS[target_type]
    except KeyError:
        raise InvalidTargetTypeError(target_type) from None
