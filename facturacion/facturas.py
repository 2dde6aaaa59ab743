"""Storage of invoices and their product lines."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime

from facturacion.audit import AuditLog
from facturacion.database import Database, DatabaseError, NotFoundError
from facturacion.models import Factura, FacturaXMLError, ProductoInput
from facturacion.records import AuditLogDB, FacturaDB, ProductoDB, to_json

logger = logging.getLogger(__name__)

_USUARIO = "system"

_FULL_COLUMNS = (
    "id, numero_factura, clave_acceso, fecha_emision, cliente_nombre, cliente_cedula, "
    "cliente_direccion, cliente_telefono, cliente_email, subtotal, iva, total, "
    "estado, numero_autorizacion, fecha_autorizacion, xml_original, xml_autorizado, "
    "observaciones_sri, ambiente, tipo_emision, fecha_creacion, fecha_actualizacion"
)

_LIST_COLUMNS = (
    "id, numero_factura, clave_acceso, fecha_emision, cliente_nombre, cliente_cedula, "
    "subtotal, iva, total, estado, numero_autorizacion, ambiente"
)

_CLIENT_LIST_COLUMNS = (
    "id, numero_factura, clave_acceso, cliente_cedula, cliente_nombre, "
    "subtotal, iva, total, estado, fecha_emision, fecha_creacion, "
    "numero_autorizacion, fecha_autorizacion, observaciones_sri, xml_original, xml_autorizado"
)

_PRODUCT_COLUMNS = (
    "id, factura_id, codigo, codigo_principal, codigo_auxiliar, descripcion, "
    "unidad_medida, cantidad, precio_unitario, descuento, precio_total_sin_iva, "
    "precio_total, iva"
)

_INSERT_FACTURA = """
    INSERT INTO facturas (
        numero_factura, clave_acceso, fecha_emision, cliente_nombre, cliente_cedula,
        cliente_direccion, cliente_telefono, cliente_email, subtotal, iva, total,
        estado, xml_original, ambiente, tipo_emision
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"""

_INSERT_PRODUCTO = """
    INSERT INTO productos (
        factura_id, codigo, descripcion, cantidad, precio_unitario,
        descuento, precio_total_sin_iva, precio_total, iva
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)"""

_NEXT_NUMBER = (
    "SELECT COALESCE(MAX(CAST(SUBSTR(numero_factura, 5) AS INTEGER)), 0) "
    "FROM facturas WHERE numero_factura LIKE 'FAC-%'"
)


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _factura_from_row(row: sqlite3.Row) -> FacturaDB:
    keys = set(row.keys())

    def get(name: str, default: object) -> object:
        value = row[name] if name in keys else None
        return default if value is None else value

    return FacturaDB(
        id=get("id", 0),
        numero_factura=get("numero_factura", ""),
        clave_acceso=get("clave_acceso", ""),
        fecha_emision=_parse_datetime(get("fecha_emision", None)),
        cliente_nombre=get("cliente_nombre", ""),
        cliente_cedula=get("cliente_cedula", ""),
        cliente_direccion=get("cliente_direccion", ""),
        cliente_telefono=get("cliente_telefono", ""),
        cliente_email=get("cliente_email", ""),
        subtotal=float(get("subtotal", 0.0)),
        iva=float(get("iva", 0.0)),
        total=float(get("total", 0.0)),
        estado=get("estado", ""),
        numero_autorizacion=get("numero_autorizacion", ""),
        fecha_autorizacion=_parse_datetime(get("fecha_autorizacion", None)),
        xml_original=get("xml_original", ""),
        xml_autorizado=get("xml_autorizado", ""),
        observaciones_sri=get("observaciones_sri", ""),
        ambiente=get("ambiente", ""),
        tipo_emision=get("tipo_emision", ""),
        fecha_creacion=_parse_datetime(get("fecha_creacion", None)),
        fecha_actualizacion=_parse_datetime(get("fecha_actualizacion", None)),
    )


def _producto_from_row(row: sqlite3.Row) -> ProductoDB:
    return ProductoDB(
        id=row["id"],
        factura_id=row["factura_id"],
        codigo=row["codigo"],
        codigo_principal=row["codigo_principal"] or "",
        codigo_auxiliar=row["codigo_auxiliar"] or "",
        descripcion=row["descripcion"],
        unidad_medida=row["unidad_medida"] or "",
        cantidad=float(row["cantidad"]),
        precio_unitario=float(row["precio_unitario"]),
        descuento=float(row["descuento"] or 0.0),
        precio_total_sin_iva=float(row["precio_total_sin_iva"]),
        precio_total=float(row["precio_total"]),
        iva=float(row["iva"]),
    )


class FacturaRepository:
    """Create, read, update and delete stored invoices."""

    def __init__(self, database: Database) -> None:
        self.database = database
        self.auditoria = AuditLog(database)

    def _query(self, sql: str, params: tuple, context: str) -> list[sqlite3.Row]:
        try:
            return self.database.connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"{context}: {exc}") from exc

    def _fetch_one(self, sql: str, params: tuple, missing: str) -> FacturaDB:
        try:
            row = self.database.connection.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise DatabaseError(f"error obteniendo factura: {exc}") from exc
        if row is None:
            raise NotFoundError(missing)
        return _factura_from_row(row)

    def _auditar(self, entry: AuditLogDB) -> None:
        try:
            self.auditoria.registrar(entry)
        except DatabaseError as exc:
            logger.warning("No se pudo registrar auditoría: %s", exc)

    def _obtener_existente(self, factura_id: int) -> FacturaDB:
        try:
            return self.obtener_por_id(factura_id)
        except NotFoundError as exc:
            raise NotFoundError(f"factura no encontrada: {exc}") from exc

    def guardar(
        self,
        factura: Factura,
        clave_acceso: str,
        productos: Sequence[ProductoInput],
    ) -> FacturaDB:
        """Store an invoice in draft state with its lines; return the stored record."""
        if len(productos) < len(factura.detalles):
            raise ValueError(
                "la lista de productos no corresponde a los detalles de la factura"
            )
        try:
            xml_original = factura.generar_xml().decode("utf-8")
        except FacturaXMLError as exc:
            raise FacturaXMLError(f"error generando XML: {exc}") from exc

        info = factura.info_factura
        try:
            with self.database.transaction() as conn:
                ultimo = conn.execute(_NEXT_NUMBER).fetchone()[0] or 0
                numero_factura = f"FAC-{int(ultimo) + 1:06d}"
                cursor = conn.execute(
                    _INSERT_FACTURA,
                    (
                        numero_factura,
                        clave_acceso,
                        datetime.now().isoformat(),
                        info.razon_social_comprador,
                        info.identificacion_comprador,
                        info.dir_establecimiento,
                        "",
                        "",
                        info.total_sin_impuestos,
                        info.importe_total - info.total_sin_impuestos,
                        info.importe_total,
                        "BORRADOR",
                        xml_original,
                        "PRUEBAS",
                        "NORMAL",
                    ),
                )
                factura_id = cursor.lastrowid
                for detalle, producto in zip(factura.detalles, productos):
                    conn.execute(
                        _INSERT_PRODUCTO,
                        (
                            factura_id,
                            producto.codigo,
                            detalle.descripcion,
                            detalle.cantidad,
                            detalle.precio_unitario,
                            detalle.descuento,
                            detalle.precio_total_sin_impuesto,
                            detalle.precio_total_sin_impuesto,
                            0,
                        ),
                    )
        except DatabaseError as exc:
            raise DatabaseError(f"error guardando factura: {exc}") from exc
        return self.obtener_por_id(factura_id)

    def obtener_por_id(self, factura_id: int) -> FacturaDB:
        """Return the invoice with this id."""
        return self._fetch_one(
            f"SELECT {_FULL_COLUMNS} FROM facturas WHERE id = ?",
            (factura_id,),
            f"factura con ID {factura_id} no encontrada",
        )

    def obtener_por_numero(self, numero: str) -> FacturaDB:
        """Return the invoice with this invoice number."""
        return self._fetch_one(
            f"SELECT {_FULL_COLUMNS} FROM facturas WHERE numero_factura = ?",
            (numero,),
            f"factura con número {numero} no encontrada",
        )

    def listar(self, limite: int = 50, offset: int = 0) -> list[FacturaDB]:
        """Return invoices, most recently created first, paginated."""
        rows = self._query(
            f"SELECT {_LIST_COLUMNS} FROM facturas "
            "ORDER BY fecha_creacion DESC, id DESC LIMIT ? OFFSET ?",
            (limite, offset),
            "error listando facturas",
        )
        return [_factura_from_row(row) for row in rows]

    def listar_por_cliente(
        self, cedula: str, limite: int = 50, offset: int = 0
    ) -> list[FacturaDB]:
        """Return one customer's invoices, most recently created first, paginated."""
        rows = self._query(
            f"SELECT {_CLIENT_LIST_COLUMNS} FROM facturas WHERE cliente_cedula = ? "
            "ORDER BY fecha_creacion DESC, id DESC LIMIT ? OFFSET ?",
            (cedula, limite, offset),
            "error listando facturas por cliente",
        )
        return [_factura_from_row(row) for row in rows]

    def actualizar_estado(
        self,
        factura_id: int,
        estado: str,
        numero_autorizacion: str = "",
        xml_autorizado: str = "",
        observaciones: str = "",
    ) -> None:
        """Set the state and authority response; AUTORIZADA also stamps the authorisation time."""
        fecha_autorizacion = datetime.now().isoformat() if estado == "AUTORIZADA" else None
        try:
            with self.database.transaction() as conn:
                conn.execute(
                    """UPDATE facturas
                       SET estado = ?, numero_autorizacion = ?, fecha_autorizacion = ?,
                           xml_autorizado = ?, observaciones_sri = ?,
                           fecha_actualizacion = CURRENT_TIMESTAMP
                       WHERE id = ?""",
                    (
                        estado,
                        numero_autorizacion,
                        fecha_autorizacion,
                        xml_autorizado,
                        observaciones,
                        factura_id,
                    ),
                )
        except DatabaseError as exc:
            raise DatabaseError(f"error actualizando estado de factura: {exc}") from exc

    def actualizar(
        self,
        factura_id: int,
        cliente_cedula: str,
        cliente_nombre: str,
        productos: Sequence[ProductoDB],
        observaciones: str = "",
    ) -> FacturaDB:
        """Replace customer data and lines of a draft invoice and record the change."""
        antes = self._obtener_existente(factura_id)
        if antes.estado != "BORRADOR":
            raise DatabaseError("solo se pueden actualizar facturas en estado BORRADOR")

        subtotal = sum(p.cantidad * p.precio_unitario for p in productos)
        total = subtotal
        try:
            with self.database.transaction() as conn:
                conn.execute(
                    """UPDATE facturas
                       SET cliente_cedula = ?, cliente_nombre = ?, subtotal = ?, total = ?
                       WHERE id = ?""",
                    (cliente_cedula, cliente_nombre, subtotal, total, factura_id),
                )
                conn.execute("DELETE FROM productos WHERE factura_id = ?", (factura_id,))
                for producto in productos:
                    subtotal_producto = producto.cantidad * producto.precio_unitario
                    conn.execute(
                        _INSERT_PRODUCTO,
                        (
                            factura_id,
                            producto.codigo,
                            producto.descripcion,
                            producto.cantidad,
                            producto.precio_unitario,
                            producto.descuento,
                            subtotal_producto,
                            subtotal_producto,
                            0,
                        ),
                    )
        except DatabaseError as exc:
            raise DatabaseError(f"error actualizando factura: {exc}") from exc

        despues = self.obtener_por_id(factura_id)
        self._auditar(
            AuditLogDB(
                tabla="facturas",
                registro_id=factura_id,
                operacion="UPDATE",
                usuario=_USUARIO,
                datos_antes=to_json(antes),
                datos_despues=to_json(despues),
            )
        )
        return despues

    def eliminar(self, factura_id: int) -> None:
        """Delete an invoice with its lines and record the deletion."""
        factura = self._obtener_existente(factura_id)
        try:
            with self.database.transaction() as conn:
                conn.execute("DELETE FROM productos WHERE factura_id = ?", (factura_id,))
                conn.execute("DELETE FROM facturas WHERE id = ?", (factura_id,))
        except DatabaseError as exc:
            raise DatabaseError(f"error eliminando factura: {exc}") from exc
        self._auditar(
            AuditLogDB(
                tabla="facturas",
                registro_id=factura_id,
                operacion="DELETE",
                usuario=_USUARIO,
                datos_antes=to_json(factura),
            )
        )

    def productos(self, factura_id: int) -> list[ProductoDB]:
        """Return the lines of an invoice in insertion order."""
        rows = self._query(
            f"SELECT {_PRODUCT_COLUMNS} FROM productos WHERE factura_id = ? ORDER BY id",
            (factura_id,),
            "error obteniendo productos",
        )
        return [_producto_from_row(row) for row in rows]

    def estadisticas(self) -> dict[str, object]:
        """Return invoice count, counts per state and the authorised total."""
        conn = self.database.connection
        try:
            total = conn.execute("SELECT COUNT(*) FROM facturas").fetchone()[0]
        except sqlite3.Error as exc:
            raise DatabaseError(f"error obteniendo total de facturas: {exc}") from exc
        try:
            rows = conn.execute(
                "SELECT estado, COUNT(*) FROM facturas GROUP BY estado"
            ).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(
                f"error obteniendo estadísticas por estado: {exc}"
            ) from exc
        try:
            facturado = conn.execute(
                "SELECT SUM(total) FROM facturas WHERE estado = 'AUTORIZADA'"
            ).fetchone()[0]
        except sqlite3.Error as exc:
            raise DatabaseError(f"error obteniendo total facturado: {exc}") from exc
        return {
            "total_facturas": int(total),
            "por_estado": {estado: int(cantidad) for estado, cantidad in rows},
            "total_facturado": float(facturado) if facturado is not None else 0.0,
        }