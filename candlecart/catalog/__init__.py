"""
Catalog: products, customization options and combination validation.

    from candlecart import catalog

    result = catalog.validate(product, catalog.Combination(scent_id="lavender", size_id="lg"))
    if not result.is_valid:
        print(result.reason)   # "option unavailable" | "incompatible combination"
"""

from candlecart.catalog._types import (
    OptionKind,
    OptionRef,
    Scent,
    Color,
    Size,
    CustomizationOption,
    Combination,
    Compatibility,
    Inventory,
    Product,
)
from candlecart.catalog._validator import (
    OPTION_UNAVAILABLE,
    INCOMPATIBLE_COMBINATION,
    Validation,
    resolve,
    validate,
    labels,
)
from candlecart.catalog._store import CatalogStore, MemoryCatalog, fetch_products

__all__ = (
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
    "OPTION_UNAVAILABLE",
    "INCOMPATIBLE_COMBINATION",
    "Validation",
    "resolve",
    "validate",
    "labels",
    "CatalogStore",
    "MemoryCatalog",
    "fetch_products",
)
