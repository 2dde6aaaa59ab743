import pytest

from facturacion.models import (
    Detalle,
    Factura,
    FacturaInput,
    FacturaXMLError,
    InfoFactura,
    InfoTributaria,
    ProductoInput,
    parse_factura_xml,
)

CLAVE = "2306202501179214673900110010010000000019152728411"


def _tributaria(secuencial="000000001"):
    return InfoTributaria(
        ambiente="1",
        tipo_emision="1",
        razon_social="EMPRESA DEMO S.A.",
        ruc="1234567890001",
        clave_acceso=CLAVE,
        cod_doc="01",
        establecimiento="001",
        punto_emision="001",
        secuencial=secuencial,
    )


def _factura():
    return Factura(
        info_tributaria=_tributaria(),
        info_factura=InfoFactura(
            fecha_emision="23/06/2025",
            dir_establecimiento="Av. Amazonas y Naciones Unidas, Quito, Ecuador",
            tipo_identificacion_comprador="05",
            identificacion_comprador="1713175071",
            razon_social_comprador="Juan Carlos Pérez",
            total_sin_impuestos=450.00,
            total_descuento=0.00,
            importe_total=517.50,
            moneda="DOLAR",
        ),
        detalles=[
            Detalle(
                codigo_principal="LAPTOP001",
                descripcion="Laptop Dell Inspiron 15",
                cantidad=1.0,
                precio_unitario=450.00,
                descuento=0.00,
                precio_total_sin_impuesto=450.00,
            )
        ],
    )


def test_inputs_hold_values():
    entrada = FacturaInput(
        cliente_nombre="Juan Carlos Pérez",
        cliente_cedula="1713175071",
        productos=[
            ProductoInput("LAPTOP001", "Laptop Dell Inspiron 15", 1.0, 450.00),
            ProductoInput("MOUSE001", "Mouse Inalámbrico", 2.0, 25.00),
        ],
    )
    assert entrada.cliente_cedula == "1713175071"
    assert len(entrada.productos) == 2
    assert entrada.productos[0].precio_unitario == 450.00


def test_generar_xml_contains_elements():
    xml = _factura().generar_xml().decode()
    for element in [
        "<factura>",
        "<infoTributaria>",
        "<infoFactura>",
        "<detalles>",
        "<detalle>",
        "<ambiente>1</ambiente>",
        "<ruc>1234567890001</ruc>",
        "<razonSocial>EMPRESA DEMO S.A.</razonSocial>",
        "<identificacionComprador>1713175071</identificacionComprador>",
        "<codigoPrincipal>LAPTOP001</codigoPrincipal>",
    ]:
        assert element in xml


def test_generar_xml_round_trip():
    factura = _factura()
    assert parse_factura_xml(factura.generar_xml()) == factura


def test_generar_xml_multiple_productos():
    factura = _factura()
    factura.info_tributaria.secuencial = "000000002"
    factura.detalles = [
        Detalle("LAPTOP001", "Laptop Dell Inspiron 15", 2.0, 450.00, 0.0, 900.00),
        Detalle("MOUSE001", "Mouse Inalámbrico", 3.0, 25.00, 0.0, 75.00),
    ]
    xml = factura.generar_xml().decode()
    assert xml.count("LAPTOP001") == 1
    assert xml.count("MOUSE001") == 1
    assert xml.count("<detalle>") == 2


def test_generar_xml_number_tags():
    factura = Factura(
        info_tributaria=InfoTributaria(
            ambiente="1", razon_social="Test Company", ruc="1234567890001", clave_acceso=CLAVE
        ),
        info_factura=InfoFactura(
            fecha_emision="23/06/2025", total_sin_impuestos=100.00, importe_total=115.00
        ),
        detalles=[Detalle(codigo_principal="TEST001", descripcion="Test Product", cantidad=1.0)],
    )
    xml = factura.generar_xml().decode()
    for tag in [
        "<ambiente>1</ambiente>",
        "<razonSocial>Test Company</razonSocial>",
        "<ruc>1234567890001</ruc>",
        "<fechaEmision>23/06/2025</fechaEmision>",
        "<totalSinImpuestos>100</totalSinImpuestos>",
        "<importeTotal>115</importeTotal>",
        "<codigoPrincipal>TEST001</codigoPrincipal>",
        "<descripcion>Test Product</descripcion>",
        "<cantidad>1</cantidad>",
    ]:
        assert tag in xml
    assert "<importeTotal>517.5</importeTotal>" in _factura().generar_xml().decode()


def test_generar_xml_escapes_text():
    factura = _factura()
    factura.info_factura.razon_social_comprador = "A & B <C>"
    xml = factura.generar_xml()
    assert b"A &amp; B &lt;C&gt;" in xml
    assert parse_factura_xml(xml).info_factura.razon_social_comprador == "A & B <C>"


def test_generar_xml_factura_vacia_falla():
    with pytest.raises(FacturaXMLError, match="RUC vacío"):
        Factura().generar_xml()


def test_generar_xml_sin_clave_falla():
    factura = _factura()
    factura.info_tributaria.clave_acceso = ""
    with pytest.raises(FacturaXMLError, match="clave de acceso"):
        factura.generar_xml()


def test_generar_xml_sin_productos_falla():
    factura = _factura()
    factura.detalles = []
    with pytest.raises(FacturaXMLError, match="sin productos"):
        factura.generar_xml()


def test_resumen(capsys):
    factura = _factura()
    texto = factura.resumen()
    assert "Secuencial: 000000001" in texto
    assert "Cliente: Juan Carlos Pérez (1713175071)" in texto
    assert "Cantidad: 1 x $450.00 = $450.00" in texto
    assert "IVA 15%: $67.50" in texto
    assert "TOTAL: $517.50" in texto
    factura.mostrar_resumen()
    assert capsys.readouterr().out == texto


def test_parse_invalid_xml():
    with pytest.raises(FacturaXMLError):
        parse_factura_xml(b"<factura><oops></factura>")
    with pytest.raises(FacturaXMLError):
        parse_factura_xml(b"<otro/>")