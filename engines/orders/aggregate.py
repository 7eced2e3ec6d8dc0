"""
POS Orders Engine - Order Aggregate
===================================
Order header, line items and modifiers, plus the totals
calculation.

    subtotal        = Σ (price + Σ modifier adjustments) × quantity
                      over non-voided items
    discount        = percent of subtotal | fixed, capped at subtotal
    service_charge  = (subtotal − discount) × service rate
    tax_amount      = (subtotal − discount + service_charge) × tax rate
    total           = subtotal − discount + service_charge + tax_amount

Each figure is rounded once; total is derived from the rounded
parts so the identity above holds exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple

from core.primitives.money import ZERO, round_currency, to_amount


class DiscountType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _amount(row: Mapping[str, Any], key: str) -> Decimal:
    value = row.get(key)
    return ZERO if value is None else to_amount(value)


# ══════════════════════════════════════════════════════════════
# LINE ITEMS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OrderItemModifier:
    id: str
    order_item_id: str
    modifier_option_id: Optional[str]
    modifier_name: str
    option_name: str
    price_adjustment: Decimal = ZERO

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "OrderItemModifier":
        return cls(
            id=row["id"],
            order_item_id=row["order_item_id"],
            modifier_option_id=row.get("modifier_option_id"),
            modifier_name=row.get("modifier_name") or "",
            option_name=row.get("option_name") or "",
            price_adjustment=_amount(row, "price_adjustment"),
        )


@dataclass(frozen=True)
class OrderItem:
    """
    A line on an order. price is the menu price snapshot taken when
    the item was added; it never follows later menu changes.
    """

    id: str
    order_id: str
    restaurant_id: str
    menu_item_id: Optional[str]
    name: str
    price: Decimal
    quantity: int
    notes: Optional[str] = None
    voided: bool = False
    void_reason: Optional[str] = None
    kitchen_sent_at: Optional[datetime] = None
    modifiers: Tuple[OrderItemModifier, ...] = ()

    @property
    def unit_price(self) -> Decimal:
        return self.price + sum(
            (m.price_adjustment for m in self.modifiers), Decimal("0")
        )

    @property
    def line_total(self) -> Decimal:
        """Unrounded; rounding happens once at the order total."""
        return self.unit_price * self.quantity

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        modifiers: Iterable[Mapping[str, Any]] = (),
    ) -> "OrderItem":
        return cls(
            id=row["id"],
            order_id=row["order_id"],
            restaurant_id=row["restaurant_id"],
            menu_item_id=row.get("menu_item_id"),
            name=row.get("name") or "",
            price=_amount(row, "price"),
            quantity=int(row.get("quantity") or 0),
            notes=row.get("notes"),
            voided=bool(row.get("voided")),
            void_reason=row.get("void_reason"),
            kitchen_sent_at=parse_timestamp(row.get("kitchen_sent_at")),
            modifiers=tuple(OrderItemModifier.from_row(m) for m in modifiers),
        )


# ══════════════════════════════════════════════════════════════
# TOTALS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_amount: Decimal
    service_charge: Decimal
    tax_amount: Decimal
    total: Decimal

    def as_patch(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "service_charge": self.service_charge,
            "tax_amount": self.tax_amount,
            "total": self.total,
        }


def compute_discount(
    subtotal: Decimal,
    discount_type: Optional[str],
    discount_value: Any,
) -> Decimal:
    if not discount_type or discount_value is None:
        return ZERO
    value = to_amount(discount_value)
    if value <= 0:
        return ZERO
    if discount_type == DiscountType.PERCENT.value:
        discount = round_currency(subtotal * value / Decimal("100"))
    elif discount_type == DiscountType.FIXED.value:
        discount = round_currency(value)
    else:
        raise ValueError(f"Unknown discount_type '{discount_type}'.")
    return min(discount, subtotal)


def compute_totals(
    items: Iterable[OrderItem],
    tax_rate: Any = 0,
    service_charge_rate: Any = 0,
    discount_type: Optional[str] = None,
    discount_value: Any = None,
) -> OrderTotals:
    subtotal = round_currency(
        sum((i.line_total for i in items if not i.voided), Decimal("0"))
    )
    discount = compute_discount(subtotal, discount_type, discount_value)
    discounted = subtotal - discount
    service_charge = round_currency(discounted * to_amount(service_charge_rate))
    tax_amount = round_currency((discounted + service_charge) * to_amount(tax_rate))
    total = discounted + service_charge + tax_amount
    return OrderTotals(
        subtotal=subtotal,
        discount_amount=discount,
        service_charge=service_charge,
        tax_amount=tax_amount,
        total=round_currency(total),
    )


# ══════════════════════════════════════════════════════════════
# ORDER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Order:
    id: str
    restaurant_id: str
    order_number: int
    status: str
    source: str = "pos"
    order_type: str = "dine_in"
    branch_id: Optional[str] = None
    shift_id: Optional[str] = None
    table_id: Optional[str] = None
    subtotal: Decimal = ZERO
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    discount_amount: Decimal = ZERO
    service_charge_rate: Decimal = ZERO
    service_charge: Decimal = ZERO
    tax_rate: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    change_amount: Decimal = ZERO
    payment_round: int = 1
    notes: Optional[str] = None
    customer_name: Optional[str] = None
    cancelled_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: Tuple[OrderItem, ...] = field(default_factory=tuple)

    def computed_totals(self) -> OrderTotals:
        return compute_totals(
            self.items,
            tax_rate=self.tax_rate,
            service_charge_rate=self.service_charge_rate,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
        )

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        items: Iterable[OrderItem] = (),
    ) -> "Order":
        discount_value = row.get("discount_value")
        return cls(
            id=row["id"],
            restaurant_id=row["restaurant_id"],
            order_number=int(row.get("order_number") or 0),
            status=row["status"],
            source=row.get("source") or "pos",
            order_type=row.get("order_type") or "dine_in",
            branch_id=row.get("branch_id"),
            shift_id=row.get("shift_id"),
            table_id=row.get("table_id"),
            subtotal=_amount(row, "subtotal"),
            discount_type=row.get("discount_type"),
            discount_value=(
                None if discount_value is None else to_amount(discount_value)
            ),
            discount_amount=_amount(row, "discount_amount"),
            service_charge_rate=_amount(row, "service_charge_rate"),
            service_charge=_amount(row, "service_charge"),
            tax_rate=_amount(row, "tax_rate"),
            tax_amount=_amount(row, "tax_amount"),
            total=_amount(row, "total"),
            change_amount=_amount(row, "change_amount"),
            payment_round=int(row.get("payment_round") or 1),
            notes=row.get("notes"),
            customer_name=row.get("customer_name"),
            cancelled_reason=row.get("cancelled_reason"),
            paid_at=parse_timestamp(row.get("paid_at")),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
            items=tuple(items),
        )
