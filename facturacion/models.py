"""Invoice data structures and their XML form."""

from __future__ import annotations

import math
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from xml.sax.saxutils import escape

_ENTITIES = {
    '"': "&#34;",
    "'": "&#39;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
}


class FacturaXMLError(ValueError):
    """Raised when an invoice cannot be turned into XML or read back."""


@dataclass
class ProductoInput:
    """One product line as entered by the user."""

    codigo: str = ""
    descripcion: str = ""
    cantidad: float = 0.0
    precio_unitario: float = 0.0


@dataclass
class FacturaInput:
    """Minimal data needed to build an invoice."""

    cliente_nombre: str = ""
    cliente_cedula: str = ""
    productos: list[ProductoInput] = field(default_factory=list)


@dataclass
class InfoTributaria:
    """Issuer data required by the tax authority."""

    ambiente: str = ""
    tipo_emision: str = ""
    razon_social: str = ""
    ruc: str = ""
    clave_acceso: str = ""
    cod_doc: str = ""
    establecimiento: str = ""
    punto_emision: str = ""
    secuencial: str = ""


@dataclass
class InfoFactura:
    """Invoice-specific data."""

    fecha_emision: str = ""
    dir_establecimiento: str = ""
    tipo_identificacion_comprador: str = ""
    identificacion_comprador: str = ""
    razon_social_comprador: str = ""
    total_sin_impuestos: float = 0.0
    total_descuento: float = 0.0
    importe_total: float = 0.0
    moneda: str = ""


@dataclass
class Detalle:
    """A single invoice line."""

    codigo_principal: str = ""
    descripcion: str = ""
    cantidad: float = 0.0
    precio_unitario: float = 0.0
    descuento: float = 0.0
    precio_total_sin_impuesto: float = 0.0


_TRIBUTARIA_TAGS = [
    ("ambiente", "ambiente"),
    ("tipo_emision", "tipoEmision"),
    ("razon_social", "razonSocial"),
    ("ruc", "ruc"),
    ("clave_acceso", "claveAcceso"),
    ("cod_doc", "codDoc"),
    ("establecimiento", "estab"),
    ("punto_emision", "ptoEmi"),
    ("secuencial", "secuencial"),
]

_FACTURA_TAGS = [
    ("fecha_emision", "fechaEmision"),
    ("dir_establecimiento", "dirEstablecimiento"),
    ("tipo_identificacion_comprador", "tipoIdentificacionComprador"),
    ("identificacion_comprador", "identificacionComprador"),
    ("razon_social_comprador", "razonSocialComprador"),
    ("total_sin_impuestos", "totalSinImpuestos"),
    ("total_descuento", "totalDescuento"),
    ("importe_total", "importeTotal"),
    ("moneda", "moneda"),
]

_DETALLE_TAGS = [
    ("codigo_principal", "codigoPrincipal"),
    ("descripcion", "descripcion"),
    ("cantidad", "cantidad"),
    ("precio_unitario", "precioUnitario"),
    ("descuento", "descuento"),
    ("precio_total_sin_impuesto", "precioTotalSinImpuesto"),
]


def _format_value(value: object) -> str:
    if isinstance(value, float):
        if math.isfinite(value) and value == int(value) and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return escape(str(value), _ENTITIES)


def _element_lines(obj: object, tags: list[tuple[str, str]], indent: str) -> list[str]:
    return [
        f"{indent}<{tag}>{_format_value(getattr(obj, attr))}</{tag}>"
        for attr, tag in tags
    ]


@dataclass
class Factura:
    """A complete electronic invoice."""

    info_tributaria: InfoTributaria = field(default_factory=InfoTributaria)
    info_factura: InfoFactura = field(default_factory=InfoFactura)
    detalles: list[Detalle] = field(default_factory=list)

    def generar_xml(self) -> bytes:
        """Return the indented XML document (without declaration)."""
        if not self.info_tributaria.ruc:
            raise FacturaXMLError("no se puede generar XML: RUC vacío")
        if not self.info_tributaria.clave_acceso:
            raise FacturaXMLError("no se puede generar XML: clave de acceso vacía")
        if not self.detalles:
            raise FacturaXMLError("no se puede generar XML: factura sin productos")

        lines = ["<factura>", "  <infoTributaria>"]
        lines += _element_lines(self.info_tributaria, _TRIBUTARIA_TAGS, "    ")
        lines += ["  </infoTributaria>", "  <infoFactura>"]
        lines += _element_lines(self.info_factura, _FACTURA_TAGS, "    ")
        lines += ["  </infoFactura>", "  <detalles>"]
        for detalle in self.detalles:
            lines.append("    <detalle>")
            lines += _element_lines(detalle, _DETALLE_TAGS, "      ")
            lines.append("    </detalle>")
        lines += ["  </detalles>", "</factura>"]
        return "\n".join(lines).encode("utf-8")

    def resumen(self) -> str:
        """Return a human-readable summary of the invoice."""
        lines = [
            "=== FACTURA ELECTRÓNICA ECUATORIANA ===",
            f"Secuencial: {self.info_tributaria.secuencial}",
            f"Cliente: {self.info_factura.razon_social_comprador} "
            f"({self.info_factura.identificacion_comprador})",
        ]
        for numero, detalle in enumerate(self.detalles, start=1):
            lines.append(f"Producto {numero}: {detalle.descripcion}")
            lines.append(
                f"Cantidad: {detalle.cantidad:.0f} x ${detalle.precio_unitario:.2f}"
                f" = ${detalle.precio_total_sin_impuesto:.2f}"
            )
        iva = self.info_factura.importe_total - self.info_factura.total_sin_impuestos
        lines.append(f"IVA 15%: ${iva:.2f}")
        lines.append(f"TOTAL: ${self.info_factura.importe_total:.2f}")
        lines.append("")
        return "\n".join(lines) + "\n"

    def mostrar_resumen(self) -> str:
        """Write the summary to standard output and return the text written."""
        texto = self.resumen()
        sys.stdout.write(texto)
        sys.stdout.flush()
        return texto


def _fill(obj: object, element: ET.Element | None, tags: list[tuple[str, str]]) -> None:
    if element is None:
        return
    for attr, tag in tags:
        child = element.find(tag)
        if child is None:
            continue
        text = child.text or ""
        if isinstance(getattr(obj, attr), float):
            try:
                setattr(obj, attr, float(text) if text.strip() else 0.0)
            except ValueError as exc:
                raise FacturaXMLError(f"valor numérico inválido en <{tag}>: {text}") from exc
        else:
            setattr(obj, attr, text)


def parse_factura_xml(data: bytes | str) -> Factura:
    """Read an invoice back from its XML form."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise FacturaXMLError(f"XML inválido: {exc}") from exc
    if root.tag != "factura":
        raise FacturaXMLError(f"elemento raíz inesperado: {root.tag}")
    factura = Factura()
    _fill(factura.info_tributaria, root.find("infoTributaria"), _TRIBUTARIA_TAGS)
    _fill(factura.info_factura, root.find("infoFactura"), _FACTURA_TAGS)
    for element in root.findall("detalles/detalle"):
        detalle = Detalle()
        _fill(detalle, element, _DETALLE_TAGS)
        factura.detalles.append(detalle)
    return factura