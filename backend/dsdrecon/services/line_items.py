# Overview: Invoice line item input type and defensive parsing of caller/extraction payloads.

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from dsdrecon.validation import clean_str, coerce_decimal, coerce_int, coerce_money
from .product_resolver import LineIdentifier, looks_like_upc, normalize_upc


@dataclass
class LineItem:
    """One extracted or submitted invoice row, numbers already coerced."""
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    unit: str | None = None
    product_code: str | None = None
    upc: str | None = None
    # Product chosen by a previous price check / the associate
    product_id: int | None = None

    def identifier(self, vendor_id: int | None) -> LineIdentifier:
        upc = self.upc
        item_code = self.product_code
        if not upc and looks_like_upc(self.product_code):
            upc = self.product_code
        return LineIdentifier(
            description=self.description,
            upc=upc,
            item_code=item_code,
            vendor_id=vendor_id,
        )

    @property
    def extended_cost(self) -> Decimal:
        if self.amount:
            return self.amount
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        return {
            "lineNumber": self.line_number,
            "description": self.description,
            "quantity": float(self.quantity),
            "unit": self.unit,
            "unitPrice": float(self.unit_price),
            "amount": float(self.amount),
            "productCode": self.product_code,
            "upc": self.upc,
        }


def _first(raw: dict, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_line_item(raw: dict, position: int) -> LineItem:
    """
    Build a LineItem from a loosely-shaped dict. Never raises.

    Accepts camelCase and snake_case keys. Missing numbers become zero,
    missing line numbers default to the 1-based position.
    """
    matched = raw.get("matchedProduct") or {}
    product_id = coerce_int(_first(raw, "productId", "product_id") or matched.get("productId"))

    return LineItem(
        line_number=coerce_int(_first(raw, "lineNumber", "line_number"), default=position) or position,
        description=clean_str(raw.get("description"), max_length=255) or "",
        quantity=coerce_money(_first(raw, "quantity", "expectedQty", "qty")),
        unit_price=coerce_money(_first(raw, "unitPrice", "unit_price", "unitCost", "unit_cost")),
        amount=coerce_money(_first(raw, "amount", "totalAmount", "extended_cost")),
        unit=clean_str(raw.get("unit"), max_length=32),
        product_code=clean_str(
            _first(raw, "productCode", "product_code", "sku", "itemCode", "item_code"), max_length=64
        ),
        upc=normalize_upc(_first(raw, "upc")),
        product_id=product_id,
    )


def parse_line_items(raw_items: list | None) -> list[LineItem]:
    items = []
    for idx, raw in enumerate(raw_items or [], start=1):
        if not isinstance(raw, dict):
            continue
        items.append(parse_line_item(raw, idx))
    return items


def quantity_as_units(value: Decimal | None) -> int:
    """
    Expected scan count for a line: whole units, never negative.

    Fractional quantities (OCR reading "2.5" cases) round half up, so 2.5 -> 3.
    """
    number = coerce_decimal(value, default=Decimal("0"))
    return max(int(number.to_integral_value(rounding=ROUND_HALF_UP)), 0)
