from dataclasses import dataclass
from typing import List


@dataclass
class DomainError(Exception):
    """Base for failures surfaced to the caller as ``application/problem+json``.

    ``problem`` is the slug appended to the service's problem-type base URI.
    """

    detail: str
    title: str = "Domain Error"
    problem: str = "domain-error"
    errors: List[dict] | None = None
    status_code: int = 400


@dataclass
class ValidationFailedError(DomainError):
    title: str = "Invalid payload"
    problem: str = "validation-error"
    status_code: int = 400


@dataclass
class NotFoundError(DomainError):
    title: str = "Not Found"
    problem: str = "not-found"
    status_code: int = 404


@dataclass
class PermissionDeniedError(DomainError):
    title: str = "Forbidden"
    problem: str = "forbidden"
    status_code: int = 403


@dataclass
class PersistenceError(DomainError):
    title: str = "Persistence failure"
    problem: str = "persistence-error"
    status_code: int = 500


class DownstreamError(RuntimeError):
    """A channel, automation or webhook call failed.

    Raised only inside adapter boundaries; callers convert it into an audit
    event and never let it escape an operation whose record already persisted.
    """

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"{target}:{reason}")
        self.target = target
        self.reason = reason
