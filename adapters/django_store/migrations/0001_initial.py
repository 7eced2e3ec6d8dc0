import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import adapters.django_store.models


def _id():
    return models.CharField(
        default=adapters.django_store.models.new_row_id,
        editable=False, max_length=64, primary_key=True, serialize=False,
    )


def _created():
    return models.DateTimeField(default=django.utils.timezone.now)


def _ref(**kwargs):
    return models.CharField(max_length=64, **kwargs)


def _optional_ref():
    return models.CharField(blank=True, max_length=64, null=True)


def _money(**kwargs):
    return models.DecimalField(decimal_places=3, max_digits=12, **kwargs)


def _rate(**kwargs):
    return models.DecimalField(decimal_places=4, max_digits=7, **kwargs)


def _quantity(**kwargs):
    return models.DecimalField(decimal_places=4, max_digits=14, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("restaurant_id", _ref(db_index=True)),
                ("branch_id", _optional_ref()),
                ("shift_id", _optional_ref()),
                ("table_id", _optional_ref()),
                ("order_number", models.PositiveIntegerField()),
                ("status", models.CharField(max_length=20)),
                ("source", models.CharField(default="pos", max_length=10)),
                ("order_type", models.CharField(default="dine_in", max_length=20)),
                ("customer_name", models.CharField(blank=True, max_length=255, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("subtotal", _money(default=0)),
                ("discount_type", models.CharField(blank=True, max_length=10, null=True)),
                ("discount_value", _money(blank=True, null=True)),
                ("discount_amount", _money(default=0)),
                ("service_charge_rate", _rate(default=0)),
                ("service_charge", _money(default=0)),
                ("tax_rate", _rate(default=0)),
                ("tax_amount", _money(default=0)),
                ("total", _money(default=0)),
                ("change_amount", _money(default=0)),
                ("payment_round", models.PositiveIntegerField(default=1)),
                ("cancelled_reason", models.TextField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "orders",
                "indexes": [
                    models.Index(
                        fields=["restaurant_id", "branch_id", "status"],
                        name="idx_order_scope_status",
                    ),
                    models.Index(fields=["shift_id"], name="idx_order_shift"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("restaurant_id", "order_number"),
                        name="uq_order_restaurant_number",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("order", models.ForeignKey(
                    db_column="order_id",
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="items",
                    to="pos_store.order",
                )),
                ("restaurant_id", _ref()),
                ("menu_item_id", _optional_ref()),
                ("name", models.CharField(max_length=255)),
                ("price", _money()),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("notes", models.TextField(blank=True, null=True)),
                ("voided", models.BooleanField(default=False)),
                ("void_reason", models.TextField(blank=True, null=True)),
                ("kitchen_sent_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={"db_table": "order_items"},
        ),
        migrations.CreateModel(
            name="OrderItemModifier",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("order_item", models.ForeignKey(
                    db_column="order_item_id",
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="modifiers",
                    to="pos_store.orderitem",
                )),
                ("modifier_option_id", _optional_ref()),
                ("modifier_name", models.CharField(max_length=255)),
                ("option_name", models.CharField(max_length=255)),
                ("price_adjustment", _money(default=0)),
            ],
            options={"db_table": "order_item_modifiers"},
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("order_id", _ref(db_index=True)),
                ("restaurant_id", _ref()),
                ("branch_id", _optional_ref()),
                ("shift_id", _optional_ref()),
                ("method", models.CharField(max_length=32)),
                ("amount", _money()),
                ("payment_round", models.PositiveIntegerField(default=1)),
                ("created_by", _optional_ref()),
            ],
            options={"db_table": "payments"},
        ),
        migrations.CreateModel(
            name="Refund",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("order_id", _ref(db_index=True)),
                ("restaurant_id", _ref()),
                ("branch_id", _optional_ref()),
                ("shift_id", _optional_ref()),
                ("amount", _money()),
                ("reason", models.TextField()),
                ("refund_type", models.CharField(max_length=10)),
                ("created_by", _optional_ref()),
            ],
            options={"db_table": "refunds"},
        ),
        migrations.CreateModel(
            name="Shift",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("cashier_id", _ref(db_index=True)),
                ("restaurant_id", _ref()),
                ("branch_id", _optional_ref()),
                ("opening_cash", _money(default=0)),
                ("closing_cash", _money(blank=True, null=True)),
                ("status", models.CharField(max_length=10)),
                ("opened_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
            ],
            options={"db_table": "shifts"},
        ),
        migrations.CreateModel(
            name="ShiftTransaction",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("shift_id", _ref(db_index=True)),
                ("restaurant_id", _ref()),
                ("branch_id", _optional_ref()),
                ("type", models.CharField(max_length=10)),
                ("amount", _money()),
                ("reason", models.TextField(blank=True, null=True)),
            ],
            options={"db_table": "shift_transactions"},
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("user_id", _ref()),
                ("restaurant_id", _ref(db_index=True)),
                ("entity_type", models.CharField(max_length=32)),
                ("entity_id", _ref()),
                ("action", models.CharField(max_length=64)),
                ("details", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "db_table": "audit_logs",
                "indexes": [
                    models.Index(
                        fields=["entity_type", "entity_id"], name="idx_audit_entity",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MenuItem",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("restaurant_id", _ref(db_index=True)),
                ("name", models.CharField(max_length=255)),
                ("price", _money()),
                ("is_available", models.BooleanField(default=True)),
                ("is_favorite", models.BooleanField(default=False)),
            ],
            options={"db_table": "menu_items"},
        ),
        migrations.CreateModel(
            name="MenuItemRecipe",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("restaurant_id", _ref()),
                ("menu_item_id", _ref(db_index=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"db_table": "menu_item_recipes"},
        ),
        migrations.CreateModel(
            name="RecipeLine",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("recipe_id", _ref(db_index=True)),
                ("inventory_item_id", _ref()),
                ("qty_in_base", _quantity()),
            ],
            options={"db_table": "menu_item_recipe_lines"},
        ),
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("restaurant_id", _ref()),
                ("name", models.CharField(max_length=255)),
                ("base_unit_id", _optional_ref()),
            ],
            options={"db_table": "inventory_items"},
        ),
        migrations.CreateModel(
            name="StockLevel",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("restaurant_id", _ref()),
                ("branch_id", _ref()),
                ("item_id", _ref()),
                ("on_hand_base", _quantity(default=0)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "inventory_stock_levels",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("branch_id", "item_id"), name="uq_stock_branch_item",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransaction",
            fields=[
                ("id", _id()),
                ("created_at", _created()),
                ("restaurant_id", _ref()),
                ("branch_id", _ref()),
                ("item_id", _ref()),
                ("qty", _quantity()),
                ("unit_id", _optional_ref()),
                ("qty_in_base", _quantity()),
                ("txn_type", models.CharField(max_length=32)),
                ("reference_type", models.CharField(blank=True, max_length=32, null=True)),
                ("reference_id", _optional_ref()),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_by", _optional_ref()),
            ],
            options={
                "db_table": "inventory_transactions",
                "indexes": [
                    models.Index(
                        fields=["reference_type", "reference_id", "txn_type"],
                        name="idx_invtxn_reference",
                    ),
                ],
            },
        ),
    ]
