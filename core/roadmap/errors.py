from __future__ import annotations


class RoadmapError(Exception):
    """Base class for roadmap resolution failures."""


class InvalidDocument(RoadmapError):
    """The source could not be coerced into at least one week with items."""


class RoadmapSourceNotFound(RoadmapError):
    def __init__(self, owner: str, repo: str, path: str, *, branch: str = "") -> None:
        self.owner = owner
        self.repo = repo
        self.path = path
        self.branch = branch
        super().__init__(f"{path} missing in {owner}/{repo}@{branch or 'default'}")


class StorageUnavailable(RoadmapError):
    """The record store could not be reached or rejected the operation."""


class ResolutionCancelled(RoadmapError):
    pass


# The classes below are never raised out of the engine. They name the
# recovered conditions so the executor and overlay loader can report them.


class CheckTransportError(RoadmapError):
    pass


class UnknownCheckKind(RoadmapError):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"unknown type: {kind}")


class MissingVerifierConfiguration(RoadmapError):
    def __init__(self, message: str = "READ_ONLY_CHECKS_URL not configured") -> None:
        super().__init__(message)


class OverlayCorruption(RoadmapError):
    def __init__(self, week_key: str, reason: str) -> None:
        self.week_key = week_key
        self.reason = reason
        super().__init__(f"overlay week {week_key!r}: {reason}")
