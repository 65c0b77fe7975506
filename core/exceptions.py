from typing import Optional


class TrackerError(Exception):
    pass


class PBError(TrackerError):
    """Error response (or unusable payload) from the PocketBase server."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class ActionError(TrackerError):
    """A user action broke a workspace/objective rule."""
    pass


class SuggestionError(TrackerError):
    pass
