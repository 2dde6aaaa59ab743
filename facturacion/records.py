"""Database record types."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime


def _j(name: str, default=None, factory=None):
    if factory is not None:
        return field(default_factory=factory, metadata={"json": name})
    return field(default=default, metadata={"json": name})


@dataclass
class FacturaDB:
    """A stored invoice."""

    id: int = _j("id", 0)
    numero_factura: str = _j("numeroFactura", "")
    clave_acceso: str = _j("claveAcceso", "")
    fecha_emision: datetime | None = _j("fechaEmision")
    cliente_nombre: str = _j("clienteNombre", "")
    cliente_cedula: str = _j("clienteCedula", "")
    cliente_direccion: str = _j("clienteDireccion", "")
    cliente_telefono: str = _j("clienteTelefono", "")
    cliente_email: str = _j("clienteEmail", "")
    subtotal: float = _j("subtotal", 0.0)
    iva: float = _j("iva", 0.0)
    total: float = _j("total", 0.0)
    estado: str = _j("estado", "")
    numero_autorizacion: str = _j("numeroAutorizacion", "")
    fecha_autorizacion: datetime | None = _j("fechaAutorizacion")
    xml_original: str = _j("xmlOriginal", "")
    xml_autorizado: str = _j("xmlAutorizado", "")
    observaciones_sri: str = _j("observacionesSRI", "")
    ambiente: str = _j("ambiente", "")
    tipo_emision: str = _j("tipoEmision", "")
    fecha_creacion: datetime | None = _j("fechaCreacion")
    fecha_actualizacion: datetime | None = _j("fechaActualizacion")


@dataclass
class ProductoDB:
    """A stored invoice line."""

    id: int = _j("id", 0)
    factura_id: int = _j("facturaId", 0)
    codigo: str = _j("codigo", "")
    codigo_principal: str = _j("codigoPrincipal", "")
    codigo_auxiliar: str = _j("codigoAuxiliar", "")
    descripcion: str = _j("descripcion", "")
    unidad_medida: str = _j("unidadMedida", "")
    cantidad: float = _j("cantidad", 0.0)
    precio_unitario: float = _j("precioUnitario", 0.0)
    descuento: float = _j("descuento", 0.0)
    precio_total_sin_iva: float = _j("precioTotalSinIva", 0.0)
    precio_total: float = _j("precioTotal", 0.0)
    iva: float = _j("iva", 0.0)


@dataclass
class ClienteDB:
    """A stored customer."""

    id: int = _j("id", 0)
    cedula: str = _j("cedula", "")
    nombre: str = _j("nombre", "")
    direccion: str = _j("direccion", "")
    telefono: str = _j("telefono", "")
    email: str = _j("email", "")
    tipo_cliente: str = _j("tipoCliente", "")
    fecha_creacion: datetime | None = _j("fechaCreacion")
    activo: bool = _j("activo", False)


@dataclass
class ConfigDB:
    """A stored configuration entry."""

    id: int = _j("id", 0)
    clave: str = _j("clave", "")
    valor: str = _j("valor", "")
    tipo: str = _j("tipo", "")
    activo: bool = _j("activo", False)


@dataclass
class AuditLogDB:
    """An audit log entry."""

    id: int = _j("id", 0)
    tabla: str = _j("tabla", "")
    registro_id: int = _j("registroId", 0)
    operacion: str = _j("operacion", "")
    usuario: str = _j("usuario", "")
    datos_antes: str = _j("datosAntes", "")
    datos_despues: str = _j("datosDespues", "")
    ip_address: str = _j("ipAddress", "")
    user_agent: str = _j("userAgent", "")
    timestamp: datetime | None = _j("timestamp")


def _convert(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def to_json(record: object) -> str:
    """Serialise a record using its camel-case JSON field names."""
    if not is_dataclass(record) or isinstance(record, type):
        raise TypeError("to_json espera una instancia de registro")
    data = {
        f.metadata.get("json", f.name): _convert(getattr(record, f.name))
        for f in fields(record)
    }
    return json.dumps(data, ensure_ascii=False)