from typing import Optional


class PictoboardError(Exception):
    """Base class for every failure raised inside the pictogram core."""


class CacheUnavailable(PictoboardError):
    """
    The persistent cache layer could not be read or written.
    Callers log it and keep going with the in-process layer only.
    """


class RemoteUnavailable(PictoboardError):
    """
    A call to the pictogram service timed out, failed to connect,
    returned a non-2xx status or a body we could not decode.
    """

    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"status={status}" if status is not None else (reason or "no response")
        super().__init__(f"{url} unavailable ({detail})")


class ResolutionExhausted(PictoboardError):
    """Every fallback tier failed for a label; the placeholder takes over."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"no pictogram could be resolved for {label!r}")


class StaleRequestDiscarded(PictoboardError):
    """A search request was superseded by a newer one before it could be applied."""

    def __init__(self, request_id: int, current_id: int):
        self.request_id = request_id
        self.current_id = current_id
        super().__init__(f"request {request_id} superseded by {current_id}")
