# app/domain/errors.py
from __future__ import annotations


class AddressError(Exception):
    """Base for everything the address subsystem raises on purpose."""


class AddressValidationError(AddressError, ValueError):
    """
    Input can't become an Address. Never persisted; the message says what to fix.
    """


class MissingCoordinates(AddressValidationError):
    def __init__(self) -> None:
        super().__init__("coordinates are required as [longitude, latitude]")


class InvalidCoordinates(AddressValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"invalid coordinates: {detail}")
        self.detail = detail


class MissingRequiredField(AddressValidationError):
    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"missing required address fields: {', '.join(fields)}")
        self.fields = fields


class EmptyAddressIdentity(AddressValidationError):
    def __init__(self) -> None:
        super().__init__("address has no identity fields to build a canonical key from")


class AddressConflict(AddressError):
    """An identity change would make this address collide with another stored one."""

    def __init__(self, address_id: int, existing_id: int, normalized_key: str) -> None:
        super().__init__(
            f"address {address_id} would duplicate address {existing_id} (key={normalized_key})"
        )
        self.address_id = address_id
        self.existing_id = existing_id
        self.normalized_key = normalized_key


class StaleCanonicalKey(AddressError):
    """Identity fields were changed without recomputing normalized_key."""


class AddressNotFound(AddressError, LookupError):
    def __init__(self, address_id: int) -> None:
        super().__init__(f"address {address_id} not found")
        self.address_id = address_id


class PropertyAddressStateError(AddressError):
    """Property holds both an embedded address and a reference, or neither."""


class PersistenceFailure(AddressError, RuntimeError):
    """
    Storage unavailable or failing. Not retried here; the underlying DB error is
    chained as __cause__.
    """
