"""
Error taxonomy shared by the store, the components and the adapters.

- ValidationError: client-side constraint violation, raised before any
  gateway call is made.
- NotFoundError: referenced container/link/invitation is absent.
- PermissionDenied: advisory only, this layer is not a security boundary.
- GatewayError: backend/network failure; the backend message is kept verbatim.
- ExpiredError: invitation or share link past its validity window.
- ConflictError: write rejected because it would break a uniqueness rule.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure."""

    code: str
    message: str
    field: str | None = None


class LinkVaultError(Exception):
    """Base error."""


class ValidationError(LinkVaultError):
    def __init__(self, errors: list[FieldError] | tuple[FieldError, ...]) -> None:
        self.errors = tuple(errors)
        super().__init__("; ".join(e.message for e in self.errors) or "Invalid input")

    @property
    def codes(self) -> list[str]:
        return [e.code for e in self.errors]


class NotFoundError(LinkVaultError):
    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} not found: {ident}")


class PermissionDenied(LinkVaultError):
    def __init__(self, action: str, container_id: str | None = None) -> None:
        self.action = action
        self.container_id = container_id
        target = f" on container {container_id}" if container_id else ""
        super().__init__(f"Not allowed to {action}{target}")


class GatewayError(LinkVaultError):
    def __init__(self, message: str, operation: str | None = None) -> None:
        self.operation = operation
        super().__init__(message)


class ExpiredError(LinkVaultError):
    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} has expired or is no longer valid")


class ConflictError(LinkVaultError):
    pass
