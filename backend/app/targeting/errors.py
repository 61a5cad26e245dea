"""
Targeting Errors

Only missing inputs propagate to callers. Selector quality problems
(ambiguous matches, unstable tokens, nothing found) are returned as data
through confidence scores and empty result lists.
"""


class TargetingError(Exception):
    """Base class for all targeting errors"""


class NoDocumentError(TargetingError):
    """The crawler delivered no usable HTML, so resolution cannot start"""

    def __init__(self, message: str = "No HTML document available", url: str = ""):
        self.url = url
        if url:
            message = f"{message} ({url})"
        super().__init__(message)


class AIUnavailableError(TargetingError):
    """The completion collaborator failed, timed out or answered garbage"""


class MalformedSelectorError(TargetingError):
    """A selector could not be parsed by the query engine"""

    def __init__(self, selector: str, detail: str = ""):
        self.selector = selector
        self.detail = detail
        super().__init__(f"Invalid selector {selector!r}: {detail}" if detail else f"Invalid selector {selector!r}")
