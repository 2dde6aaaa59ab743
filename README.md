# facturacion

A library for Ecuadorian electronic invoices ("facturas"). It gives you the
invoice document and its XML form, a SQLite store for invoices, their line
items and customers, an audit trail of changes, and file-level backups of
the database. It uses only the Python standard library (`sqlite3`,
`xml.etree`, `threading`).

## Modules

### `facturacion.models`

- `ProductoInput` and `FacturaInput`: plain input data (product code,
  description, quantity, unit price; customer name, cédula and products).
- `InfoTributaria` (issuer data: ambiente, tipo de emisión, razón social,
  RUC, clave de acceso, código de documento, establecimiento, punto de
  emisión, secuencial), `InfoFactura` (emission date, address, buyer
  identification, totals, currency) and `Detalle` (one line item).
- `Factura` joins them:
  - `generar_xml()` returns the indented `<factura>` document as UTF-8 bytes,
    without an XML declaration. Whole-number amounts are written without a
    decimal part (`100`, not `100.0`). It raises `FacturaXMLError` when the
    RUC or the access key is empty or there are no line items.
  - `resumen()` returns a printable summary (lines, IVA shown as
    `importe_total - total_sin_impuestos`, and the total);
    `mostrar_resumen()` writes that summary to standard output and returns it.
- `parse_factura_xml(data)` reads such a document back into a `Factura`;
  malformed XML, a different root element or a non-numeric amount raise
  `FacturaXMLError`.

### `facturacion.records`

The stored rows as dataclasses: `FacturaDB`, `ProductoDB`, `ClienteDB`,
`ConfigDB` and `AuditLogDB`. `to_json(record)` serialises any of them with
camel-case field names (`numeroFactura`, `clienteCedula`, …) and dates in ISO
format; it raises `TypeError` for anything that is not a record instance.

### `facturacion.database`

`Database(path)` opens the SQLite file, creating its parent directory, the
tables (`facturas`, `productos`, `clientes`, `configuracion`, `audit_log`)
and their indexes if needed. It is a context manager that closes the
connection on exit, and `Database.transaction()` runs a block atomically,
committing on success and rolling back on error. Database failures raise
`DatabaseError`; missing rows raise `NotFoundError` (a subclass of both
`DatabaseError` and `LookupError`).

### `facturacion.facturas`

`FacturaRepository(database)`:

- `guardar(factura, clave_acceso, productos)` stores the invoice with state
  `BORRADOR`, ambiente `PRUEBAS`, tipo de emisión `NORMAL`, the current time as
  emission date and the generated XML, and numbers it `FAC-000001`,
  `FAC-000002`, … Each `Detalle` is stored with the code of the matching
  `ProductoInput`; fewer products than line items raise `ValueError`.
- `obtener_por_id`, `obtener_por_numero`.
- `listar(limite, offset)` and `listar_por_cliente(cedula, limite, offset)`,
  most recently created first.
- `actualizar_estado(factura_id, estado, numero_autorizacion, xml_autorizado,
  observaciones)`; the state `AUTORIZADA` also stamps the authorisation date.
- `actualizar(factura_id, cliente_cedula, cliente_nombre, productos,
  observaciones)` rewrites the customer data and line items of a `BORRADOR`
  invoice (any other state raises `DatabaseError`); subtotal and total are
  set to the sum of quantity × unit price, without IVA. The `observaciones`
  argument is accepted but not stored.
- `eliminar(factura_id)` deletes the invoice and its products.
- `productos(factura_id)` returns the line items in insertion order.
- `estadisticas()` returns `{"total_facturas": int, "por_estado": {estado:
  int}, "total_facturado": float}`, the last being the sum of totals of
  `AUTORIZADA` invoices.

Updates and deletions are written to the audit trail.

### `facturacion.clientes`

`ClienteRepository(database)`: `guardar` (insert, replacing a customer with
the same cédula), `obtener_por_id`, `obtener_por_cedula` (active customers
only), `listar(nombre, tipo_cliente, limite, offset)` (active customers,
newest first, with a case-insensitive name substring filter and an exact type
filter), `actualizar`, `desactivar` (soft delete) and `eliminar` (hard
delete). Updates, deactivations and deletions are written to the audit trail
with the user `system`; a failure to write the audit entry is logged, not
raised.

### `facturacion.audit`

`AuditLog(database)`: `registrar(entry)` stores an `AuditLogDB` and returns
its id; `por_tabla(tabla, limite, offset)` and `por_registro(tabla,
registro_id)` read entries back, newest first.

### `facturacion.backup`

- `BackupConfig`: backup directory (`./respaldos`), interval (24 hours),
  number of backups kept (30), file name prefix (`facturacion_backup`) and a
  `compresion_habilitada` flag, which is kept but not acted on.
- `BackupManager(database, config=None)` backs up the file of the given
  `Database`:
  - `crear_respaldo()` copies it to `<prefix>_<YYYYmmdd_HHMMSS>.db` in the
    backup directory (which must already exist), opens the copy and queries it,
    deletes it if that fails, and returns its path.
  - `crear_respaldo_manual(sufijo)` creates the directory if needed and writes
    `<prefix>_manual_<sufijo>_<timestamp>.db`.
  - `limpiar_respaldos_antiguos()` keeps only the newest `max_respaldos` files
    and returns how many it deleted.
  - `listar_respaldos()` returns `RespaldoInfo` entries, newest first.
  - `restaurar_desde_respaldo(ruta)` checks the backup, copies the current
    file aside as `<name>.pre_restore_<timestamp>`, replaces the database
    file, and returns the path of that copy (or `None` if it could not be
    made).
  - `iniciar_respaldos_automaticos()` makes a backup at once and then one per
    interval in a background thread, pruning old ones each time;
    `detener_respaldos_automaticos()` stops it. The `activo` property tells
    whether it is running.
- `formatear_tamano(num_bytes)` renders sizes such as `512 B` or `1.5 KB`.
- Failures raise `BackupError`.

## Example

```python
from facturacion.database import Database
from facturacion.facturas import FacturaRepository
from facturacion.models import (
    Detalle, Factura, InfoFactura, InfoTributaria, ProductoInput,
)

factura = Factura(
    info_tributaria=InfoTributaria(
        ambiente="1", tipo_emision="1", razon_social="EMPRESA DEMO S.A.",
        ruc="9999999999001", clave_acceso="0" * 49, cod_doc="01",
        establecimiento="001", punto_emision="001", secuencial="000000001",
    ),
    info_factura=InfoFactura(
        fecha_emision="23/06/2025", razon_social_comprador="CLIENTE DEMO",
        identificacion_comprador="9999999999", tipo_identificacion_comprador="05",
        total_sin_impuestos=450.0, importe_total=517.5, moneda="DOLAR",
    ),
    detalles=[
        Detalle(codigo_principal="LAPTOP001", descripcion="Laptop",
                cantidad=1.0, precio_unitario=450.0,
                precio_total_sin_impuesto=450.0),
    ],
)

print(factura.generar_xml().decode())

with Database("datos/facturacion.db") as db:
    facturas = FacturaRepository(db)
    guardada = facturas.guardar(
        factura,
        factura.info_tributaria.clave_acceso,
        [ProductoInput("LAPTOP001", "Laptop", 1.0, 450.0)],
    )
    facturas.actualizar_estado(guardada.id, "AUTORIZADA", numero_autorizacion="1")
    print(facturas.estadisticas())
```

## What this package does not do

- It does not build a `Factura` from a `FacturaInput`: there is no validation
  of cédulas or products and no IVA calculation; the caller fills in the
  amounts.
- It does not generate access keys or sequential numbers for the document,
  and it does not sign invoices or send them to the tax authority; states
  such as `AUTORIZADA` are recorded as the caller reports them.
- It has no command-line program and no HTTP API; it is a library only.