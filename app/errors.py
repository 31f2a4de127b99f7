"""Domain error taxonomy shared by services and mapped to HTTP status codes by routes.

Each error subclasses the builtin the service layer already raises for that
category, so ``except LookupError`` / ``except ValueError`` keep working.
"""

from __future__ import annotations

from collections.abc import Iterable


class NotFoundError(LookupError):
	"""Referenced farmer, mayor or parcel does not exist."""


class ValidationError(ValueError):
	"""Malformed input: bad area, bad geometry, empty required field, weak password."""


class InvalidParcelIdsError(ValidationError):
	def __init__(self, parcel_ids: Iterable[str]):
		self.parcel_ids = sorted(set(parcel_ids))
		super().__init__(f"invalid parcel ids for village: {', '.join(self.parcel_ids)}")


class UniquenessViolationError(ValueError):
	"""Duplicate company code, email or village on create/update."""


class AccessDeniedError(PermissionError):
	"""Principal is outside the village or role an operation is scoped to."""


class StoreError(RuntimeError):
	"""Persistence failure; every started mutation has been rolled back."""
