import pytest

from facturacion.audit import AuditLog
from facturacion.database import Database, DatabaseError, NotFoundError
from facturacion.facturas import FacturaRepository
from facturacion.models import (
    Detalle,
    Factura,
    FacturaXMLError,
    InfoFactura,
    InfoTributaria,
    ProductoInput,
)
from facturacion.records import ProductoDB

CEDULA = "1713175071"


def clave(n):
    return f"{n:049d}"


def make_factura(nombre, productos, subtotal, total, cedula=CEDULA, ruc="1792146739001"):
    detalles = [
        Detalle(
            codigo_principal=p.codigo,
            descripcion=p.descripcion,
            cantidad=p.cantidad,
            precio_unitario=p.precio_unitario,
            precio_total_sin_impuesto=p.cantidad * p.precio_unitario,
        )
        for p in productos
    ]
    return Factura(
        info_tributaria=InfoTributaria(
            ambiente="1",
            tipo_emision="1",
            razon_social="EMPRESA DEMO S.A.",
            ruc=ruc,
            clave_acceso=clave(1),
            cod_doc="01",
            establecimiento="001",
            punto_emision="001",
            secuencial="000000001",
        ),
        info_factura=InfoFactura(
            fecha_emision="23/06/2025",
            dir_establecimiento="Av. Principal 123",
            tipo_identificacion_comprador="05",
            identificacion_comprador=cedula,
            razon_social_comprador=nombre,
            total_sin_impuestos=subtotal,
            importe_total=total,
            moneda="DOLAR",
        ),
        detalles=detalles,
    )


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "facturas.db")
    yield database
    database.close()


@pytest.fixture
def repo(db):
    return FacturaRepository(db)


def guardar_simple(repo, n=1, nombre="CLIENTE PRUEBA DB", precio=100.0, cedula=CEDULA):
    productos = [ProductoInput("TEST001", "Producto de prueba", 1.0, precio)]
    factura = make_factura(nombre, productos, precio, precio * 1.15, cedula=cedula)
    return repo.guardar(factura, clave(n), productos)


def test_guardar_y_obtener_factura(repo):
    productos = [ProductoInput("TEST001", "Producto de prueba", 2.0, 50.0)]
    factura = make_factura("CLIENTE PRUEBA DB", productos, 100.0, 115.0)
    guardada = repo.guardar(factura, clave(7), productos)

    assert guardada.id > 0
    assert guardada.numero_factura == "FAC-000001"
    assert guardada.clave_acceso == clave(7)
    assert guardada.estado == "BORRADOR"
    assert guardada.ambiente == "PRUEBAS"
    assert guardada.tipo_emision == "NORMAL"
    assert guardada.subtotal == pytest.approx(100.0)
    assert guardada.iva == pytest.approx(15.0)
    assert guardada.total == pytest.approx(115.0)
    assert "<factura>" in guardada.xml_original
    assert guardada.fecha_emision is not None

    por_id = repo.obtener_por_id(guardada.id)
    assert por_id.cliente_nombre == "CLIENTE PRUEBA DB"
    por_numero = repo.obtener_por_numero(guardada.numero_factura)
    assert por_numero.id == guardada.id


def test_numeros_secuenciales_y_listar(repo):
    numeros = [guardar_simple(repo, n, f"CLIENTE PRUEBA {n}", 10.0 * n).numero_factura for n in (1, 2, 3)]
    assert numeros == ["FAC-000001", "FAC-000002", "FAC-000003"]

    facturas = repo.listar(10, 0)
    assert len(facturas) == 3
    assert {f.numero_factura for f in facturas} == set(numeros)
    assert len(repo.listar(2, 0)) == 2
    assert len(repo.listar(10, 2)) == 1


def test_actualizar_estado_factura(repo):
    guardada = guardar_simple(repo)
    assert guardada.estado == "BORRADOR"
    assert guardada.fecha_autorizacion is None

    numero_autorizacion = "2025062301179214673900110010010000000011234567891"
    xml_autorizado = "<factura>XML autorizado</factura>"
    repo.actualizar_estado(
        guardada.id, "AUTORIZADA", numero_autorizacion, xml_autorizado,
        "Factura autorizada correctamente",
    )

    actualizada = repo.obtener_por_id(guardada.id)
    assert actualizada.estado == "AUTORIZADA"
    assert actualizada.numero_autorizacion == numero_autorizacion
    assert actualizada.fecha_autorizacion is not None
    assert actualizada.xml_autorizado == xml_autorizado
    assert actualizada.observaciones_sri == "Factura autorizada correctamente"


def test_actualizar_estado_rechazada_sin_fecha(repo):
    guardada = guardar_simple(repo)
    repo.actualizar_estado(guardada.id, "RECHAZADA", "", "", "error")
    actualizada = repo.obtener_por_id(guardada.id)
    assert actualizada.estado == "RECHAZADA"
    assert actualizada.fecha_autorizacion is None


def test_obtener_productos_por_factura(repo):
    productos = [
        ProductoInput("PROD001", "Producto 1", 2.0, 25.0),
        ProductoInput("PROD002", "Producto 2", 1.0, 50.0),
    ]
    factura = make_factura("CLIENTE PRODUCTOS PRUEBA", productos, 100.0, 115.0)
    guardada = repo.guardar(factura, clave(1), productos)

    lineas = repo.productos(guardada.id)
    assert len(lineas) == 2
    assert lineas[0].codigo == "PROD001"
    assert lineas[0].descripcion == "Producto 1"
    assert lineas[0].precio_total_sin_iva == pytest.approx(50.0)
    assert lineas[0].unidad_medida == "UNI"
    assert lineas[1].codigo == "PROD002"
    assert all(linea.factura_id == guardada.id for linea in lineas)


def test_estadisticas_facturas(repo):
    for n, estado in enumerate(["BORRADOR", "AUTORIZADA", "AUTORIZADA"], start=1):
        guardada = guardar_simple(repo, n, f"CLIENTE ESTADISTICAS {n}")
        if estado != "BORRADOR":
            repo.actualizar_estado(guardada.id, estado, f"AUTH{n}", "", "")

    stats = repo.estadisticas()
    assert stats["total_facturas"] == 3
    assert stats["por_estado"] == {"BORRADOR": 1, "AUTORIZADA": 2}
    assert stats["total_facturado"] == pytest.approx(230.0)


def test_estadisticas_vacias(repo):
    assert repo.estadisticas() == {
        "total_facturas": 0,
        "por_estado": {},
        "total_facturado": 0.0,
    }


def test_obtener_inexistente(repo):
    with pytest.raises(NotFoundError, match="factura con ID 99 no encontrada"):
        repo.obtener_por_id(99)
    with pytest.raises(NotFoundError, match="FAC-999999"):
        repo.obtener_por_numero("FAC-999999")


def test_clave_duplicada(repo):
    guardar_simple(repo, 1)
    with pytest.raises(DatabaseError):
        guardar_simple(repo, 1)
    assert len(repo.listar(10, 0)) == 1


def test_guardar_sin_ruc_falla(repo):
    productos = [ProductoInput("X", "Producto", 1.0, 10.0)]
    factura = make_factura("CLIENTE", productos, 10.0, 11.5, ruc="")
    with pytest.raises(FacturaXMLError, match="RUC vacío"):
        repo.guardar(factura, clave(1), productos)
    assert repo.listar(10, 0) == []


def test_guardar_productos_insuficientes(repo):
    productos = [
        ProductoInput("A", "Producto A", 1.0, 10.0),
        ProductoInput("B", "Producto B", 1.0, 10.0),
    ]
    factura = make_factura("CLIENTE", productos, 20.0, 23.0)
    with pytest.raises(ValueError):
        repo.guardar(factura, clave(1), productos[:1])


def test_listar_por_cliente(repo):
    guardar_simple(repo, 1, "CLIENTE A", cedula=CEDULA)
    guardar_simple(repo, 2, "CLIENTE B", cedula="0926687856")
    guardar_simple(repo, 3, "CLIENTE A", cedula=CEDULA)

    facturas = repo.listar_por_cliente(CEDULA, 10, 0)
    assert len(facturas) == 2
    assert all(f.cliente_cedula == CEDULA for f in facturas)
    assert len(repo.listar_por_cliente("0926687856", 10, 0)) == 1
    assert repo.listar_por_cliente("0000000000", 10, 0) == []


def test_actualizar_borrador(db, repo):
    guardada = guardar_simple(repo)
    nuevos = [
        ProductoDB(codigo="N1", descripcion="Nuevo 1", cantidad=2.0, precio_unitario=30.0),
        ProductoDB(codigo="N2", descripcion="Nuevo 2", cantidad=1.0, precio_unitario=40.0),
    ]
    actualizada = repo.actualizar(guardada.id, "0926687856", "NUEVO CLIENTE", nuevos, "")

    assert actualizada.cliente_cedula == "0926687856"
    assert actualizada.cliente_nombre == "NUEVO CLIENTE"
    assert actualizada.subtotal == pytest.approx(100.0)
    assert actualizada.total == pytest.approx(100.0)
    lineas = repo.productos(guardada.id)
    assert [linea.codigo for linea in lineas] == ["N1", "N2"]
    assert lineas[0].precio_total == pytest.approx(60.0)

    auditoria = AuditLog(db).por_registro("facturas", guardada.id)
    assert [a.operacion for a in auditoria] == ["UPDATE"]
    assert "NUEVO CLIENTE" in auditoria[0].datos_despues


def test_actualizar_no_borrador(repo):
    guardada = guardar_simple(repo)
    repo.actualizar_estado(guardada.id, "AUTORIZADA", "AUTH1", "", "")
    with pytest.raises(DatabaseError, match="BORRADOR"):
        repo.actualizar(guardada.id, CEDULA, "X", [], "")


def test_actualizar_inexistente(repo):
    with pytest.raises(NotFoundError, match="factura no encontrada"):
        repo.actualizar(42, CEDULA, "X", [], "")


def test_eliminar_factura(db, repo):
    guardada = guardar_simple(repo)
    repo.eliminar(guardada.id)

    with pytest.raises(NotFoundError):
        repo.obtener_por_id(guardada.id)
    assert repo.productos(guardada.id) == []
    auditoria = AuditLog(db).por_registro("facturas", guardada.id)
    assert [a.operacion for a in auditoria] == ["DELETE"]
    assert guardada.numero_factura in auditoria[0].datos_antes


def test_eliminar_inexistente(repo):
    with pytest.raises(NotFoundError, match="factura no encontrada"):
        repo.eliminar(7)