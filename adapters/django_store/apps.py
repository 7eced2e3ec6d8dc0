"""
POS Django Store - App Configuration
====================================
Owns the relational tables behind the DataStore protocol.

This app:
- Declares one model per POS table (db_table = the table name)
- Translates DataStore calls into ORM queries

This app does NOT:
- Validate business rules
- Decide status transitions
"""

from django.apps import AppConfig


class DjangoStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "adapters.django_store"
    label = "pos_store"
    verbose_name = "POS Store"
