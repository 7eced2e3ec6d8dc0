"""
POS Django Store - Table Models
===============================
One model per POS table. Column names match the row keys the
engines read and write, so a model's .values() is a DataStore row.

Ids are opaque strings. Money is stored at 3 decimal places,
rates at 4, inventory quantities at 4.

This file contains NO business logic.
"""

import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.store import tables


def new_row_id() -> str:
    return str(uuid.uuid4())


def _money(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=3, **kwargs)


def _rate(**kwargs):
    return models.DecimalField(max_digits=7, decimal_places=4, **kwargs)


def _quantity(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=4, **kwargs)


def _ref(**kwargs):
    kwargs.setdefault("max_length", 64)
    return models.CharField(**kwargs)


def _optional_ref():
    return models.CharField(max_length=64, null=True, blank=True)


class PosRow(models.Model):
    id = models.CharField(
        primary_key=True, max_length=64, default=new_row_id, editable=False,
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

class Order(PosRow):
    restaurant_id = _ref(db_index=True)
    branch_id = _optional_ref()
    shift_id = _optional_ref()
    table_id = _optional_ref()
    order_number = models.PositiveIntegerField()
    status = models.CharField(max_length=20)
    source = models.CharField(max_length=10, default="pos")
    order_type = models.CharField(max_length=20, default="dine_in")
    customer_name = models.CharField(max_length=255, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)

    subtotal = _money(default=0)
    discount_type = models.CharField(max_length=10, null=True, blank=True)
    discount_value = _money(null=True, blank=True)
    discount_amount = _money(default=0)
    service_charge_rate = _rate(default=0)
    service_charge = _money(default=0)
    tax_rate = _rate(default=0)
    tax_amount = _money(default=0)
    total = _money(default=0)
    change_amount = _money(default=0)
    payment_round = models.PositiveIntegerField(default=1)

    cancelled_reason = models.TextField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = tables.ORDERS
        constraints = [
            models.UniqueConstraint(
                fields=["restaurant_id", "order_number"],
                name="uq_order_restaurant_number",
            ),
        ]
        indexes = [
            models.Index(
                fields=["restaurant_id", "branch_id", "status"],
                name="idx_order_scope_status",
            ),
            models.Index(fields=["shift_id"], name="idx_order_shift"),
        ]


class OrderItem(PosRow):
    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name="items", db_column="order_id",
    )
    restaurant_id = _ref()
    menu_item_id = _optional_ref()
    name = models.CharField(max_length=255)
    price = _money()
    quantity = models.PositiveIntegerField(default=1)
    notes = models.TextField(null=True, blank=True)
    voided = models.BooleanField(default=False)
    void_reason = models.TextField(null=True, blank=True)
    kitchen_sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = tables.ORDER_ITEMS


class OrderItemModifier(PosRow):
    order_item = models.ForeignKey(
        OrderItem, on_delete=models.CASCADE, related_name="modifiers",
        db_column="order_item_id",
    )
    modifier_option_id = _optional_ref()
    modifier_name = models.CharField(max_length=255)
    option_name = models.CharField(max_length=255)
    price_adjustment = _money(default=0)

    class Meta:
        db_table = tables.ORDER_ITEM_MODIFIERS


# ══════════════════════════════════════════════════════════════
# PAYMENTS AND REFUNDS (append-only)
# ══════════════════════════════════════════════════════════════

class Payment(PosRow):
    order_id = _ref(db_index=True)
    restaurant_id = _ref()
    branch_id = _optional_ref()
    shift_id = _optional_ref()
    method = models.CharField(max_length=32)
    amount = _money()
    payment_round = models.PositiveIntegerField(default=1)
    created_by = _optional_ref()

    class Meta:
        db_table = tables.PAYMENTS


class Refund(PosRow):
    order_id = _ref(db_index=True)
    restaurant_id = _ref()
    branch_id = _optional_ref()
    shift_id = _optional_ref()
    amount = _money()
    reason = models.TextField()
    refund_type = models.CharField(max_length=10)
    created_by = _optional_ref()

    class Meta:
        db_table = tables.REFUNDS


# ══════════════════════════════════════════════════════════════
# SHIFTS
# ══════════════════════════════════════════════════════════════

class Shift(PosRow):
    cashier_id = _ref(db_index=True)
    restaurant_id = _ref()
    branch_id = _optional_ref()
    opening_cash = _money(default=0)
    closing_cash = _money(null=True, blank=True)
    status = models.CharField(max_length=10)
    opened_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(null=True, blank=True)

    class Meta:
        db_table = tables.SHIFTS
        constraints = [
            models.UniqueConstraint(
                fields=["cashier_id"],
                condition=Q(status="open"),
                name="uq_shift_cashier_open",
            ),
        ]


class ShiftTransaction(PosRow):
    shift_id = _ref(db_index=True)
    restaurant_id = _ref()
    branch_id = _optional_ref()
    type = models.CharField(max_length=10)
    amount = _money()
    reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = tables.SHIFT_TRANSACTIONS


# ══════════════════════════════════════════════════════════════
# AUDIT
# ══════════════════════════════════════════════════════════════

class AuditLog(PosRow):
    user_id = _ref()
    restaurant_id = _ref(db_index=True)
    entity_type = models.CharField(max_length=32)
    entity_id = _ref()
    action = models.CharField(max_length=64)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = tables.AUDIT_LOGS
        indexes = [
            models.Index(
                fields=["entity_type", "entity_id"], name="idx_audit_entity",
            ),
        ]


# ══════════════════════════════════════════════════════════════
# MENU AND INVENTORY
# ══════════════════════════════════════════════════════════════

class MenuItem(PosRow):
    restaurant_id = _ref(db_index=True)
    name = models.CharField(max_length=255)
    price = _money()
    is_available = models.BooleanField(default=True)
    is_favorite = models.BooleanField(default=False)

    class Meta:
        db_table = tables.MENU_ITEMS


class MenuItemRecipe(PosRow):
    restaurant_id = _ref()
    menu_item_id = _ref(db_index=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = tables.MENU_ITEM_RECIPES


class RecipeLine(PosRow):
    recipe_id = _ref(db_index=True)
    inventory_item_id = _ref()
    qty_in_base = _quantity()

    class Meta:
        db_table = tables.RECIPE_LINES


class InventoryItem(PosRow):
    restaurant_id = _ref()
    name = models.CharField(max_length=255)
    base_unit_id = _optional_ref()

    class Meta:
        db_table = tables.INVENTORY_ITEMS


class StockLevel(PosRow):
    restaurant_id = _ref()
    branch_id = _ref()
    item_id = _ref()
    on_hand_base = _quantity(default=0)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = tables.STOCK_LEVELS
        constraints = [
            models.UniqueConstraint(
                fields=["branch_id", "item_id"], name="uq_stock_branch_item",
            ),
        ]


class InventoryTransaction(PosRow):
    restaurant_id = _ref()
    branch_id = _ref()
    item_id = _ref()
    qty = _quantity()
    unit_id = _optional_ref()
    qty_in_base = _quantity()
    txn_type = models.CharField(max_length=32)
    reference_type = models.CharField(max_length=32, null=True, blank=True)
    reference_id = _optional_ref()
    notes = models.TextField(null=True, blank=True)
    created_by = _optional_ref()

    class Meta:
        db_table = tables.INVENTORY_TRANSACTIONS
        indexes = [
            models.Index(
                fields=["reference_type", "reference_id", "txn_type"],
                name="idx_invtxn_reference",
            ),
        ]


TABLE_MODELS = {
    model._meta.db_table: model
    for model in (
        Order,
        OrderItem,
        OrderItemModifier,
        Payment,
        Refund,
        Shift,
        ShiftTransaction,
        AuditLog,
        MenuItem,
        MenuItemRecipe,
        RecipeLine,
        InventoryItem,
        StockLevel,
        InventoryTransaction,
    )
}
