"""
Catalog types: products and their customization options.

Options are a tagged union (Scent | Color | Size). Every variant carries
the same capability fields: id, name, additional_price, available.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import StrEnum

from candlecart._types import Money


# ═══════════════════════════════════════════════════════════════════════════════
# Option kinds
# ═══════════════════════════════════════════════════════════════════════════════

class OptionKind(StrEnum):
    SCENT = "scent"
    COLOR = "color"
    SIZE = "size"


type OptionRef = tuple[OptionKind, str]
"""(kind, option id). Option ids are only unique within their group."""


# ═══════════════════════════════════════════════════════════════════════════════
# Options
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Scent:
    id: str
    name: str
    additional_price: Money = Decimal("0")
    available: bool = True
    intensity: str | None = None
    notes: tuple[str, ...] = ()

    kind = OptionKind.SCENT


@dataclass(frozen=True, slots=True)
class Color:
    id: str
    name: str
    additional_price: Money = Decimal("0")
    available: bool = True
    hex_code: str | None = None

    kind = OptionKind.COLOR


@dataclass(frozen=True, slots=True)
class Size:
    id: str
    name: str
    additional_price: Money = Decimal("0")
    available: bool = True
    dimensions: str | None = None
    weight: str | None = None
    burn_time: str | None = None

    kind = OptionKind.SIZE


type CustomizationOption = Scent | Color | Size


# ═══════════════════════════════════════════════════════════════════════════════
# Combination
# ═══════════════════════════════════════════════════════════════════════════════

KEY_SEPARATOR = "|"
"""Joins option ids in `Combination.key`; never valid inside an id."""


@dataclass(frozen=True, slots=True)
class Combination:
    """A shopper's selection. Every part is optional."""

    scent_id: str | None = None
    color_id: str | None = None
    size_id: str | None = None

    def selected(self) -> tuple[OptionRef, ...]:
        refs: list[OptionRef] = []
        if self.scent_id is not None:
            refs.append((OptionKind.SCENT, self.scent_id))
        if self.color_id is not None:
            refs.append((OptionKind.COLOR, self.color_id))
        if self.size_id is not None:
            refs.append((OptionKind.SIZE, self.size_id))
        return tuple(refs)

    @property
    def key(self) -> str:
        """Stable identity string, used for merge-by-identity and unique indexes."""
        return KEY_SEPARATOR.join(v or "" for v in (self.scent_id, self.color_id, self.size_id))

    @classmethod
    def from_key(cls, key: str) -> Combination:
        scent, color, size = key.split(KEY_SEPARATOR)
        return cls(scent or None, color or None, size or None)


# ═══════════════════════════════════════════════════════════════════════════════
# Compatibility rules
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Compatibility:
    """
    Disallowed option pairs. Pairs are unordered sets, so the rule is symmetric.

        rules = Compatibility.disallow(
            ((OptionKind.SCENT, "eucalyptus"), (OptionKind.COLOR, "black")),
        )
    """

    disallowed: frozenset[frozenset[OptionRef]] = frozenset()

    @classmethod
    def disallow(cls, *pairs: tuple[OptionRef, OptionRef]) -> Compatibility:
        return cls(frozenset(frozenset(pair) for pair in pairs))

    def allows(self, a: OptionRef, b: OptionRef) -> bool:
        return frozenset((a, b)) not in self.disallowed

    def first_conflict(self, refs: tuple[OptionRef, ...]) -> tuple[OptionRef, OptionRef] | None:
        for i, a in enumerate(refs):
            for b in refs[i + 1:]:
                if not self.allows(a, b):
                    return a, b
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory + Product
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Inventory:
    quantity: int = 0
    low_stock_threshold: int = 5

    @property
    def is_in_stock(self) -> bool:
        return self.quantity > 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.quantity <= self.low_stock_threshold


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    base_price: Money
    category: str = "candle"
    scents: tuple[Scent, ...] = ()
    colors: tuple[Color, ...] = ()
    sizes: tuple[Size, ...] = ()
    inventory: Inventory = field(default_factory=Inventory)
    compatibility: Compatibility = field(default_factory=Compatibility)
    description: str = ""
    images: tuple[str, ...] = ()

    def options(self, kind: OptionKind) -> tuple[CustomizationOption, ...]:
        match kind:
            case OptionKind.SCENT:
                return self.scents
            case OptionKind.COLOR:
                return self.colors
            case OptionKind.SIZE:
                return self.sizes

    def option(self, kind: OptionKind, option_id: str) -> CustomizationOption | None:
        return next((o for o in self.options(kind) if o.id == option_id), None)

    def with_stock(self, quantity: int) -> Product:
        return replace(self, inventory=replace(self.inventory, quantity=quantity))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "KEY_SEPARATOR",
    "OptionKind",
    "OptionRef",
    "Scent",
    "Color",
    "Size",
    "CustomizationOption",
    "Combination",
    "Compatibility",
    "Inventory",
    "Product",
)
