"""Service-level exceptions.

Services raise these for expected, caller-recoverable outcomes; the API
layer maps them to HTTP responses with the message as ``detail``.
Anything else (a lost database connection, a constraint violation that a
guard should have prevented) propagates unchanged.
"""

from __future__ import annotations


class OrgAccessError(Exception):
    status_code: int = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class NotFoundError(OrgAccessError):
    """A referenced organization, code, member, license, or user is missing."""

    status_code = 404


class ConflictError(OrgAccessError):
    """An identifier is taken, or the target already has what was asked for."""

    status_code = 409


class BadRequestError(OrgAccessError):
    """A business rule rejected the operation."""

    status_code = 400
