"""
Exceptions raised by the ninegag feed pipeline.

Error philosophy:
  - TransportError      → FAIL HARD: the request never produced a usable body.
  - ParseError          → FAIL HARD: the body could not be turned into a tree.
  - StructureDriftError → FAIL HARD for the current operation: a required anchor
                          is gone, which means the upstream layout changed.
  - PartialFailure      → PARTIAL RETURN: some items in a batch failed, the rest
                          are delivered. Returned to the caller, not raised.
  - PaginationError     → caller-level precondition, nothing was fetched.

Optional fields (counts, section labels) never raise; they degrade to a
default value and are logged as warnings by the stage that read them.
"""

from typing import Optional

from .schemas import ItemFailure


class NineGagError(Exception):
    """Base exception for all ninegag errors."""

    def __init__(
        self,
        message: str,
        stage: str = "",
        cause: Optional[BaseException] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage          # e.g. "sections", "page", "detail"
        self.cause = cause
        self.details = details or {}

    def __str__(self) -> str:
        text = f"[{self.stage}] {self.message}" if self.stage else self.message
        if self.cause is not None:
            text = f"{text} ({type(self.cause).__name__}: {self.cause})"
        return text

    def to_response(self) -> dict:
        """Convert to a JSON-friendly error payload."""
        return {
            "error": type(self).__name__,
            "stage": self.stage,
            "message": self.message,
            "cause": repr(self.cause) if self.cause is not None else None,
            "details": self.details
        }


# --- FAIL HARD: the operation stops ---

class TransportError(NineGagError):
    """Raised on connection failure, timeout or a non-success status."""

    def __init__(
        self,
        message: str,
        stage: str = "fetch",
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        url: Optional[str] = None
    ):
        super().__init__(message, stage, cause, {"status_code": status_code, "url": url})
        self.status_code = status_code
        self.url = url


class ParseError(NineGagError):
    """Raised when a body cannot be parsed into a navigable document."""
    pass


class StructureDriftError(NineGagError):
    """
    Raised when a required anchor (container, item node, JSON key) is missing.

    This is the signal that upstream shipped a breaking redesign; selectors in
    ClientConfig are the place to adjust.
    """

    def __init__(
        self,
        message: str,
        stage: str,
        selector: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message, stage, cause, {"selector": selector})
        self.selector = selector


class OperationCancelled(NineGagError):
    """Raised when the caller's cancel signal fires while work is in flight."""
    pass


class PaginationError(NineGagError):
    """Raised when a continuation is requested that cannot exist."""
    pass


class VoteRejectedError(NineGagError):
    """Raised when the vote endpoint answers but does not register the vote."""

    def __init__(self, message: str, post_id: str, score: Optional[int] = None):
        super().__init__(message, "vote", details={"post_id": post_id, "score": score})
        self.post_id = post_id
        self.score = score


# --- PARTIAL RETURN: the batch is delivered together with its failures ---

class PartialFailure(NineGagError):
    """
    Aggregates per-item failures of a batch operation.

    The pipeline returns this instead of raising it so the successful items
    are never lost; callers that want strict behavior raise it themselves
    (see Page.raise_for_failures).
    """

    def __init__(self, failures: list[ItemFailure], stage: str = "detail"):
        message = f"{len(failures)} item(s) failed"
        super().__init__(message, stage, details={"failures": [f.model_dump() for f in failures]})
        self.failures = failures
