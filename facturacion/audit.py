"""Audit trail of changes made to stored records."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from facturacion.database import Database, DatabaseError
from facturacion.records import AuditLogDB

_COLUMNS = (
    "id, tabla, registro_id, operacion, usuario, datos_antes, datos_despues, "
    "ip_address, user_agent, timestamp"
)

_INSERT = """
    INSERT INTO audit_log (tabla, registro_id, operacion, usuario, datos_antes,
                           datos_despues, ip_address, user_agent)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)"""


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _from_row(row: sqlite3.Row) -> AuditLogDB:
    return AuditLogDB(
        id=row["id"],
        tabla=row["tabla"],
        registro_id=row["registro_id"],
        operacion=row["operacion"],
        usuario=row["usuario"],
        datos_antes=row["datos_antes"] or "",
        datos_despues=row["datos_despues"] or "",
        ip_address=row["ip_address"] or "",
        user_agent=row["user_agent"] or "",
        timestamp=_parse_datetime(row["timestamp"]),
    )


class AuditLog:
    """Writes and reads entries of the audit log table."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def registrar(self, entry: AuditLogDB) -> int:
        """Store an audit entry and return its new id."""
        try:
            with self.database.transaction() as conn:
                cursor = conn.execute(
                    _INSERT,
                    (
                        entry.tabla,
                        entry.registro_id,
                        entry.operacion,
                        entry.usuario,
                        entry.datos_antes,
                        entry.datos_despues,
                        entry.ip_address,
                        entry.user_agent,
                    ),
                )
        except DatabaseError as exc:
            raise DatabaseError(f"error registrando auditoría: {exc}") from exc
        return cursor.lastrowid

    def _query(self, sql: str, params: tuple, context: str) -> list[AuditLogDB]:
        try:
            rows = self.database.connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"{context}: {exc}") from exc
        return [_from_row(row) for row in rows]

    def por_tabla(self, tabla: str, limite: int = 50, offset: int = 0) -> list[AuditLogDB]:
        """Return the entries for one table, newest first, paginated."""
        sql = (
            f"SELECT {_COLUMNS} FROM audit_log WHERE tabla = ? "
            "ORDER BY timestamp DESC LIMIT ? OFFSET ?"
        )
        return self._query(sql, (tabla, limite, offset), "error obteniendo auditoría")

    def por_registro(self, tabla: str, registro_id: int) -> list[AuditLogDB]:
        """Return every entry for one record of a table, newest first."""
        sql = (
            f"SELECT {_COLUMNS} FROM audit_log WHERE tabla = ? AND registro_id = ? "
            "ORDER BY timestamp DESC"
        )
        return self._query(
            sql, (tabla, registro_id), "error obteniendo auditoría del registro"
        )