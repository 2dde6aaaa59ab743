"""SQLite storage for invoices, customers, configuration and audit log."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


class _Now:
    """Marker for a column defaulting to the current timestamp."""


NOW = _Now()


@dataclass(frozen=True)
class _Column:
    name: str
    kind: str
    required: bool = False
    unique: bool = False
    default: object = None

    def ddl(self) -> str:
        parts = [self.name, self.kind]
        if self.required:
            parts.append("NOT NULL")
        if self.unique:
            parts.append("UNIQUE")
        if self.default is not None:
            parts.append(f"DEFAULT {_sql_literal(self.default)}")
        return " ".join(parts)


@dataclass(frozen=True)
class _Table:
    name: str
    columns: tuple[_Column, ...]
    cascades: dict[str, str] = field(default_factory=dict)

    def ddl(self) -> str:
        items = ["id INTEGER PRIMARY KEY AUTOINCREMENT"]
        items += [column.ddl() for column in self.columns]
        items += [
            f"FOREIGN KEY ({column}) REFERENCES {target} (id) ON DELETE CASCADE"
            for column, target in self.cascades.items()
        ]
        return f"CREATE TABLE IF NOT EXISTS {self.name} ({', '.join(items)})"


def _sql_literal(value: object) -> str:
    if value is NOW:
        return "CURRENT_TIMESTAMP"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value).replace("'", "''")
    return f"'{text}'"


def _text(name: str, **options: object) -> _Column:
    return _Column(name, "TEXT", **options)


def _real(name: str, **options: object) -> _Column:
    return _Column(name, "REAL", **options)


def _stamp(name: str, **options: object) -> _Column:
    return _Column(name, "DATETIME", **options)


_SCHEMA = (
    _Table(
        "facturas",
        (
            _text("numero_factura", required=True, unique=True),
            _text("clave_acceso", required=True, unique=True),
            _stamp("fecha_emision", required=True),
            _text("cliente_nombre", required=True),
            _text("cliente_cedula", required=True),
            *(_text(f"cliente_{dato}") for dato in ("direccion", "telefono", "email")),
            *(_real(importe, required=True) for importe in ("subtotal", "iva", "total")),
            _text("estado", required=True, default="BORRADOR"),
            _text("numero_autorizacion"),
            _stamp("fecha_autorizacion"),
            *(_text(nombre) for nombre in ("xml_original", "xml_autorizado", "observaciones_sri")),
            _text("ambiente", required=True, default="PRUEBAS"),
            _text("tipo_emision", required=True, default="NORMAL"),
            *(
                _stamp(nombre, required=True, default=NOW)
                for nombre in ("fecha_creacion", "fecha_actualizacion")
            ),
        ),
    ),
    _Table(
        "productos",
        (
            _Column("factura_id", "INTEGER", required=True),
            _text("codigo", required=True),
            _text("codigo_principal"),
            _text("codigo_auxiliar"),
            _text("descripcion", required=True),
            _text("unidad_medida", default="UNI"),
            _real("cantidad", required=True),
            _real("precio_unitario", required=True),
            _real("descuento", default=0),
            *(
                _real(nombre, required=True)
                for nombre in ("precio_total_sin_iva", "precio_total", "iva")
            ),
        ),
        cascades={"factura_id": "facturas"},
    ),
    _Table(
        "clientes",
        (
            _text("cedula", required=True, unique=True),
            _text("nombre", required=True),
            *(_text(dato) for dato in ("direccion", "telefono", "email")),
            _text("tipo_cliente", required=True, default="PERSONA_NATURAL"),
            _stamp("fecha_creacion", required=True, default=NOW),
            _Column("activo", "BOOLEAN", required=True, default=True),
        ),
    ),
    _Table(
        "configuracion",
        (
            _text("clave", required=True, unique=True),
            _text("valor", required=True),
            _text("tipo", required=True, default="STRING"),
            _Column("activo", "BOOLEAN", required=True, default=True),
        ),
    ),
    _Table(
        "audit_log",
        (
            _text("tabla", required=True),
            _Column("registro_id", "INTEGER", required=True),
            _text("operacion", required=True),
            _text("usuario", required=True, default="sistema"),
            *(
                _text(nombre)
                for nombre in ("datos_antes", "datos_despues", "ip_address", "user_agent")
            ),
            _stamp("timestamp", required=True, default=NOW),
        ),
    ),
)

# (index name prefix, table, {index suffix: column})
_INDEX_GROUPS = (
    (
        "facturas",
        "facturas",
        {
            "numero": "numero_factura",
            "clave": "clave_acceso",
            "cliente": "cliente_cedula",
            "fecha": "fecha_emision",
            "estado": "estado",
        },
    ),
    ("productos", "productos", {"factura": "factura_id"}),
    ("clientes", "clientes", {"cedula": "cedula"}),
    (
        "audit",
        "audit_log",
        {
            "tabla": "tabla",
            "registro": "registro_id",
            "timestamp": "timestamp",
            "usuario": "usuario",
        },
    ),
)


def _schema_statements() -> Iterator[str]:
    for table in _SCHEMA:
        yield table.ddl()
    for prefix, table_name, columns in _INDEX_GROUPS:
        for suffix, column in columns.items():
            yield (
                f"CREATE INDEX IF NOT EXISTS idx_{prefix}_{suffix} "
                f"ON {table_name}({column})"
            )


class DatabaseError(Exception):
    """Raised when a database operation fails."""


class NotFoundError(DatabaseError, LookupError):
    """Raised when a requested record does not exist."""


class Database:
    """An open SQLite database with the invoicing schema in place."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DatabaseError(f"error creando directorio database: {exc}") from exc
        try:
            self.connection = sqlite3.connect(str(self.path))
            self.connection.row_factory = sqlite3.Row
            self.connection.execute("SELECT 1")
        except sqlite3.Error as exc:
            raise DatabaseError(f"error abriendo base de datos: {exc}") from exc
        try:
            with self.transaction() as conn:
                for statement in _schema_statements():
                    conn.execute(statement)
        except DatabaseError as exc:
            self.connection.close()
            raise DatabaseError(f"error creando tablas: {exc}") from exc
        logger.info("Base de datos inicializada: %s", self.path)

    def close(self) -> None:
        """Close the connection."""
        self.connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically: commit on success, roll back on error."""
        conn = self.connection
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise DatabaseError(str(exc)) from exc
        except BaseException:
            conn.rollback()
            raise

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()