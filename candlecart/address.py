"""
Postal addresses and their validation.

Validation reports every bad field at once, keyed by field name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from candlecart._errors import ValidationError

POSTAL_CODE = re.compile(r"^\d{5}(-\d{4})?$")

_REQUIRED = ("first_name", "last_name", "street", "city", "state", "postal_code", "country")

_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "street": "Street address",
    "city": "City",
    "state": "State",
    "postal_code": "ZIP code",
    "country": "Country",
}


@dataclass(frozen=True, slots=True)
class Address:
    first_name: str
    last_name: str
    street: str
    city: str
    state: str
    postal_code: str
    country: str
    apartment: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def address_errors(address: Address, prefix: str = "") -> dict[str, str]:
    """Field → message for every problem found. Empty dict means valid."""
    errors: dict[str, str] = {}
    for name in _REQUIRED:
        if not str(getattr(address, name) or "").strip():
            errors[prefix + name] = f"{_LABELS[name]} is required"

    if prefix + "postal_code" not in errors and not POSTAL_CODE.match(address.postal_code.strip()):
        errors[prefix + "postal_code"] = "Please enter a valid ZIP code"
    return errors


def validate_address(address: Address, prefix: str = "") -> None:
    """Raise ValidationError carrying the full field map."""
    errors = address_errors(address, prefix)
    if errors:
        raise ValidationError("address is incomplete or invalid", errors)


__all__ = ("POSTAL_CODE", "Address", "address_errors", "validate_address")
