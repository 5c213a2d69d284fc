from boxoffice.domain.value_objects import (
    BASE_CATEGORY_KEY,
    CategoryRef,
    CustomerSnapshot,
    ExplicitCategory,
    SelectionLine,
    SyntheticCategory,
    parse_category_ref,
    quantize_money,
)

__all__ = [
    "BASE_CATEGORY_KEY",
    "CategoryRef",
    "CustomerSnapshot",
    "ExplicitCategory",
    "SelectionLine",
    "SyntheticCategory",
    "parse_category_ref",
    "quantize_money",
]
