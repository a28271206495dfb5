import re

RATE_LIMIT = "rate-limit"
QUOTA = "quota"
CONTENT_POLICY = "content-policy"
MALFORMED_RESPONSE = "malformed-response"
OTHER = "other"


class ClipError(Exception):
    pass


class UnresolvedSource(ClipError):
    def __init__(self, video_id: str):
        super().__init__(f"Media source {video_id!r} cannot be located")
        self.video_id = video_id


class EmptyTranscript(ClipError):
    def __init__(self, media_id: str):
        super().__init__(f"Transcript for {media_id!r} has no segments")
        self.media_id = media_id


class UpstreamTimeout(ClipError):
    retryable = True


class TranscriptionTimeout(UpstreamTimeout):
    def __init__(self, handle: str, waited: float):
        super().__init__(f"Transcription {handle} did not finish within {waited:.0f}s")
        self.handle = handle
        self.waited = waited


class UpstreamServiceError(ClipError):
    def __init__(self, message: str, category: str = OTHER, service: str = ""):
        super().__init__(message)
        self.category = category
        self.service = service

    @property
    def retryable(self) -> bool:
        return self.category == RATE_LIMIT


class TranscriptionFailed(UpstreamServiceError):
    def __init__(self, message: str):
        super().__init__(message, category=OTHER, service="transcription")


class MalformedResponse(UpstreamServiceError):
    def __init__(self, message: str, service: str = "llm"):
        super().__init__(message, category=MALFORMED_RESPONSE, service=service)


class MediaToolError(ClipError):
    def __init__(self, message: str, cmd: list[str] | None = None,
                 stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.cmd = cmd or []
        self.stdout = stdout
        self.stderr = stderr


class MediaToolTimeout(MediaToolError):
    pass


def classify(message: str) -> str:
    """Sorts an upstream error message into a category."""
    m = message.lower()
    if re.search(r"\b429\b|\brate[ _-]?limit|too many requests|overloaded", m):
        return RATE_LIMIT
    if re.search(r"\bquota\b|\bcredit|\bbilling\b", m):
        return QUOTA
    if "content" in m and re.search(r"polic|safety|filter", m):
        return CONTENT_POLICY
    return OTHER
