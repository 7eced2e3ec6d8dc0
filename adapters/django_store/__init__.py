"""
POS Django Store Adapter
========================
Relational DataStore backed by the Django ORM.
"""
