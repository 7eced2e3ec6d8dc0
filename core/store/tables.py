"""
POS Store - Table Names
=======================
Relational layout shared by every DataStore implementation.
"""

ORDERS = "orders"
ORDER_ITEMS = "order_items"
ORDER_ITEM_MODIFIERS = "order_item_modifiers"
PAYMENTS = "payments"
REFUNDS = "refunds"
SHIFTS = "shifts"
SHIFT_TRANSACTIONS = "shift_transactions"
AUDIT_LOGS = "audit_logs"
MENU_ITEMS = "menu_items"
MENU_ITEM_RECIPES = "menu_item_recipes"
RECIPE_LINES = "menu_item_recipe_lines"
INVENTORY_ITEMS = "inventory_items"
STOCK_LEVELS = "inventory_stock_levels"
INVENTORY_TRANSACTIONS = "inventory_transactions"

ALL_TABLES = frozenset({
    ORDERS,
    ORDER_ITEMS,
    ORDER_ITEM_MODIFIERS,
    PAYMENTS,
    REFUNDS,
    SHIFTS,
    SHIFT_TRANSACTIONS,
    AUDIT_LOGS,
    MENU_ITEMS,
    MENU_ITEM_RECIPES,
    RECIPE_LINES,
    INVENTORY_ITEMS,
    STOCK_LEVELS,
    INVENTORY_TRANSACTIONS,
})

# parent table → ((child table, foreign key column), ...)
CASCADES = {
    ORDERS: ((ORDER_ITEMS, "order_id"),),
    ORDER_ITEMS: ((ORDER_ITEM_MODIFIERS, "order_item_id"),),
}
