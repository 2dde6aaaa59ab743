"""Ecuadorian electronic invoices: XML documents, SQLite storage, audit trail and backups."""

__version__ = "0.1.0"

__all__ = ["models", "records", "database", "audit", "clientes", "facturas", "backup"]