import json
from datetime import datetime, timezone

import pytest

from facturacion.records import AuditLogDB, ClienteDB, ConfigDB, FacturaDB, ProductoDB, to_json


def test_factura_json_uses_camel_case_names():
    data = json.loads(to_json(FacturaDB(numero_factura="FAC-000001", total=115.0)))
    assert data["numeroFactura"] == "FAC-000001"
    assert data["total"] == 115.0
    assert "observacionesSRI" in data
    assert data["fechaAutorizacion"] is None


def test_datetime_round_trip():
    momento = datetime(2025, 6, 23, 10, 30, tzinfo=timezone.utc)
    data = json.loads(to_json(ClienteDB(cedula="1713175071", fecha_creacion=momento, activo=True)))
    assert datetime.fromisoformat(data["fechaCreacion"]) == momento
    assert data["activo"] is True
    assert data["tipoCliente"] == ""


def test_other_records_keys():
    producto = json.loads(to_json(ProductoDB(factura_id=3, codigo="PROD001")))
    assert producto["facturaId"] == 3
    assert set(json.loads(to_json(ConfigDB()))) == {"id", "clave", "valor", "tipo", "activo"}
    audit = json.loads(to_json(AuditLogDB(tabla="clientes", registro_id=7, operacion="DELETE")))
    assert (audit["tabla"], audit["registroId"], audit["operacion"]) == ("clientes", 7, "DELETE")


def test_to_json_rejects_non_records():
    with pytest.raises(TypeError):
        to_json({"id": 1})
    with pytest.raises(TypeError):
        to_json(FacturaDB)