"""Storage of customers with audited updates and deletions."""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
from datetime import datetime

from facturacion.audit import AuditLog
from facturacion.database import Database, DatabaseError, NotFoundError
from facturacion.records import AuditLogDB, ClienteDB, to_json

logger = logging.getLogger(__name__)

_COLUMNS = "id, cedula, nombre, direccion, telefono, email, tipo_cliente, fecha_creacion, activo"
_USUARIO = "system"


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _from_row(row: sqlite3.Row) -> ClienteDB:
    return ClienteDB(
        id=row["id"],
        cedula=row["cedula"],
        nombre=row["nombre"],
        direccion=row["direccion"] or "",
        telefono=row["telefono"] or "",
        email=row["email"] or "",
        tipo_cliente=row["tipo_cliente"],
        fecha_creacion=_parse_datetime(row["fecha_creacion"]),
        activo=bool(row["activo"]),
    )


class ClienteRepository:
    """Create, read, update and delete customers."""

    def __init__(self, database: Database) -> None:
        self.database = database
        self.auditoria = AuditLog(database)

    def _execute(self, sql: str, params: tuple, context: str) -> sqlite3.Cursor:
        try:
            with self.database.transaction() as conn:
                return conn.execute(sql, params)
        except DatabaseError as exc:
            raise DatabaseError(f"{context}: {exc}") from exc

    def _fetch_one(self, sql: str, params: tuple, missing: str) -> ClienteDB:
        try:
            row = self.database.connection.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise DatabaseError(f"error obteniendo cliente: {exc}") from exc
        if row is None:
            raise NotFoundError(missing)
        return _from_row(row)

    def _auditar(self, entry: AuditLogDB) -> None:
        try:
            self.auditoria.registrar(entry)
        except DatabaseError as exc:
            logger.warning("No se pudo registrar auditoría: %s", exc)

    def guardar(self, cliente: ClienteDB) -> ClienteDB:
        """Insert the customer, replacing any with the same cédula."""
        cursor = self._execute(
            """INSERT OR REPLACE INTO clientes
               (cedula, nombre, direccion, telefono, email, tipo_cliente)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                cliente.cedula,
                cliente.nombre,
                cliente.direccion,
                cliente.telefono,
                cliente.email,
                cliente.tipo_cliente,
            ),
            "error guardando cliente",
        )
        return self.obtener_por_id(cursor.lastrowid)

    def obtener_por_id(self, cliente_id: int) -> ClienteDB:
        """Return the customer with this id, active or not."""
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM clientes WHERE id = ?",
            (cliente_id,),
            f"cliente con ID {cliente_id} no encontrado",
        )

    def obtener_por_cedula(self, cedula: str) -> ClienteDB:
        """Return the active customer with this cédula."""
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM clientes WHERE cedula = ? AND activo = 1",
            (cedula,),
            f"cliente con cédula {cedula} no encontrado",
        )

    def listar(
        self,
        nombre: str = "",
        tipo_cliente: str = "",
        limite: int = 50,
        offset: int = 0,
    ) -> list[ClienteDB]:
        """Return active customers, newest first, optionally filtered."""
        sql = f"SELECT {_COLUMNS} FROM clientes WHERE activo = 1"
        params: list[object] = []
        if nombre:
            sql += " AND LOWER(nombre) LIKE LOWER(?)"
            params.append(f"%{nombre}%")
        if tipo_cliente:
            sql += " AND tipo_cliente = ?"
            params.append(tipo_cliente)
        sql += " ORDER BY fecha_creacion DESC LIMIT ? OFFSET ?"
        params += [limite, offset]
        try:
            rows = self.database.connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"error ejecutando consulta de clientes: {exc}") from exc
        return [_from_row(row) for row in rows]

    def actualizar(self, cliente: ClienteDB) -> ClienteDB:
        """Update an active customer and record the change."""
        try:
            antes = self.obtener_por_id(cliente.id)
        except NotFoundError as exc:
            raise NotFoundError(f"cliente no encontrado: {exc}") from exc
        self._execute(
            """UPDATE clientes
               SET cedula = ?, nombre = ?, direccion = ?, telefono = ?, email = ?,
                   tipo_cliente = ?
               WHERE id = ? AND activo = 1""",
            (
                cliente.cedula,
                cliente.nombre,
                cliente.direccion,
                cliente.telefono,
                cliente.email,
                cliente.tipo_cliente,
                cliente.id,
            ),
            "error actualizando cliente",
        )
        despues = self.obtener_por_id(cliente.id)
        self._auditar(
            AuditLogDB(
                tabla="clientes",
                registro_id=cliente.id,
                operacion="UPDATE",
                usuario=_USUARIO,
                datos_antes=to_json(antes),
                datos_despues=to_json(despues),
            )
        )
        return despues

    def desactivar(self, cliente_id: int) -> None:
        """Mark a customer inactive and record the change."""
        try:
            cliente = self.obtener_por_id(cliente_id)
        except NotFoundError as exc:
            raise NotFoundError(f"cliente no encontrado: {exc}") from exc
        self._execute(
            "UPDATE clientes SET activo = 0 WHERE id = ?",
            (cliente_id,),
            "error desactivando cliente",
        )
        self._auditar(
            AuditLogDB(
                tabla="clientes",
                registro_id=cliente_id,
                operacion="DEACTIVATE",
                usuario=_USUARIO,
                datos_antes=to_json(cliente),
                datos_despues=to_json(dataclasses.replace(cliente, activo=False)),
            )
        )

    def eliminar(self, cliente_id: int) -> None:
        """Delete a customer permanently and record the deletion."""
        try:
            cliente = self.obtener_por_id(cliente_id)
        except NotFoundError as exc:
            raise NotFoundError(f"cliente no encontrado: {exc}") from exc
        self._execute(
            "DELETE FROM clientes WHERE id = ?",
            (cliente_id,),
            "error eliminando cliente",
        )
        self._auditar(
            AuditLogDB(
                tabla="clientes",
                registro_id=cliente_id,
                operacion="DELETE",
                usuario=_USUARIO,
                datos_antes=to_json(cliente),
            )
        )