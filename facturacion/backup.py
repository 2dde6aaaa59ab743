"""Backups of the invoicing database: manual, periodic, cleanup and restore."""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from facturacion.database import Database, DatabaseError
from facturacion.facturas import FacturaRepository

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_UNITS = "KMGTPE"


class BackupError(Exception):
    """Raised when a backup cannot be created, listed, cleaned or restored."""


@dataclass
class BackupConfig:
    """Where backups go, how often they are made and how many are kept."""

    ruta_respaldos: Path = field(default_factory=lambda: Path("./respaldos"))
    intervalo_respaldo: timedelta = timedelta(hours=24)
    max_respaldos: int = 30
    compresion_habilitada: bool = False
    prefijo_respaldo: str = "facturacion_backup"

    def __post_init__(self) -> None:
        self.ruta_respaldos = Path(self.ruta_respaldos)


@dataclass
class RespaldoInfo:
    """Description of one backup file."""

    nombre: str
    ruta_completa: Path
    fecha_creacion: datetime
    tamano_bytes: int
    tamano_legible: str


def formatear_tamano(num_bytes: int) -> str:
    """Return a size in bytes as a short human-readable string."""
    unit = 1024
    if num_bytes < unit:
        return f"{num_bytes} B"
    div, exp = unit, 0
    n = num_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{num_bytes / div:.1f} {_UNITS[exp]}B"


def _timestamp() -> str:
    return datetime.now().strftime(_TIMESTAMP_FORMAT)


def _copiar(origen: Path, destino: Path) -> None:
    with open(origen, "rb") as src, open(destino, "wb") as dst:
        shutil.copyfileobj(src, dst)
        dst.flush()
        os.fsync(dst.fileno())


class BackupManager:
    """Creates, lists, prunes and restores copies of a database file."""

    def __init__(self, database: Database, config: BackupConfig | None = None) -> None:
        self.database = database
        self.config = config if config is not None else BackupConfig()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def ruta_base_datos(self) -> Path:
        """Path of the database file being backed up."""
        return self.database.path

    @property
    def activo(self) -> bool:
        """Whether periodic backups are running."""
        return self._thread is not None and self._thread.is_alive()

    def iniciar_respaldos_automaticos(self) -> None:
        """Make a backup now and then one every configured interval in the background."""
        try:
            self.config.ruta_respaldos.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackupError(f"error creando directorio de respaldos: {exc}") from exc
        try:
            self.crear_respaldo()
        except BackupError as exc:
            raise BackupError(f"error en respaldo inicial: {exc}") from exc

        self._stop.clear()
        self._thread = threading.Thread(target=self._ciclo, daemon=True)
        self._thread.start()
        logger.info("Respaldos automáticos iniciados (cada %s)", self.config.intervalo_respaldo)

    def _ciclo(self) -> None:
        intervalo = self.config.intervalo_respaldo.total_seconds()
        while not self._stop.wait(intervalo):
            try:
                self.crear_respaldo()
            except BackupError as exc:
                logger.error("Error en respaldo automático: %s", exc)
            try:
                self.limpiar_respaldos_antiguos()
            except BackupError as exc:
                logger.warning("Error limpiando respaldos antiguos: %s", exc)

    def detener_respaldos_automaticos(self) -> None:
        """Stop periodic backups, waiting for the background worker to finish."""
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
        logger.info("Respaldos automáticos detenidos")

    def _crear(self, nombre_archivo: str) -> Path:
        destino = self.config.ruta_respaldos / nombre_archivo
        logger.info("Creando respaldo: %s", nombre_archivo)
        try:
            _copiar(self.ruta_base_datos, destino)
        except OSError as exc:
            raise BackupError(f"error copiando base de datos: {exc}") from exc
        try:
            self._verificar_integridad(destino)
        except BackupError as exc:
            destino.unlink(missing_ok=True)
            raise BackupError(f"respaldo corrupto, eliminado: {exc}") from exc
        logger.info("Respaldo creado exitosamente: %s", destino)
        return destino

    def crear_respaldo(self) -> Path:
        """Copy the database into the backup directory and verify the copy."""
        return self._crear(f"{self.config.prefijo_respaldo}_{_timestamp()}.db")

    def crear_respaldo_manual(self, sufijo: str) -> Path:
        """Create a backup whose name carries the given suffix."""
        try:
            self.config.ruta_respaldos.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackupError(f"error creando directorio de respaldos: {exc}") from exc
        return self._crear(
            f"{self.config.prefijo_respaldo}_manual_{sufijo}_{_timestamp()}.db"
        )

    def _verificar_integridad(self, ruta: Path) -> dict[str, object]:
        try:
            respaldo = Database(ruta)
        except (DatabaseError, sqlite3.Error) as exc:
            raise BackupError(f"respaldo no se puede abrir: {exc}") from exc
        try:
            stats = FacturaRepository(respaldo).estadisticas()
        except (DatabaseError, sqlite3.Error) as exc:
            raise BackupError(f"respaldo corrupto, error en consulta: {exc}") from exc
        finally:
            respaldo.close()
        logger.info("Respaldo verificado - Total facturas: %s", stats["total_facturas"])
        return stats

    def _archivos_respaldo(self) -> list[os.DirEntry]:
        try:
            with os.scandir(self.config.ruta_respaldos) as entries:
                return [
                    entry
                    for entry in entries
                    if not entry.is_dir()
                    and entry.name.startswith(self.config.prefijo_respaldo)
                ]
        except OSError as exc:
            raise BackupError(f"error leyendo directorio de respaldos: {exc}") from exc

    def limpiar_respaldos_antiguos(self) -> int:
        """Delete the oldest backups beyond the configured maximum; return how many."""
        archivos = []
        for entry in self._archivos_respaldo():
            try:
                archivos.append((entry.stat().st_mtime, entry))
            except OSError:
                continue
        archivos.sort(key=lambda item: item[0], reverse=True)

        eliminados = 0
        for _, entry in archivos[self.config.max_respaldos:]:
            try:
                os.remove(entry.path)
            except OSError as exc:
                logger.warning("Error eliminando respaldo antiguo %s: %s", entry.name, exc)
            else:
                eliminados += 1
        if eliminados:
            logger.info("Eliminados %d respaldos antiguos", eliminados)
        return eliminados

    def listar_respaldos(self) -> list[RespaldoInfo]:
        """Return every backup in the directory, newest first."""
        respaldos = []
        for entry in self._archivos_respaldo():
            try:
                info = entry.stat()
            except OSError:
                continue
            respaldos.append(
                RespaldoInfo(
                    nombre=entry.name,
                    ruta_completa=self.config.ruta_respaldos / entry.name,
                    fecha_creacion=datetime.fromtimestamp(info.st_mtime),
                    tamano_bytes=info.st_size,
                    tamano_legible=formatear_tamano(info.st_size),
                )
            )
        respaldos.sort(key=lambda r: r.fecha_creacion, reverse=True)
        return respaldos

    def restaurar_desde_respaldo(self, ruta_respaldo: str | Path) -> Path | None:
        """Replace the database file with a verified backup.

        The current file is first copied aside; the path of that copy is
        returned, or None if it could not be made.
        """
        ruta_respaldo = Path(ruta_respaldo)
        logger.info("Restaurando desde respaldo: %s", ruta_respaldo)
        if not ruta_respaldo.exists():
            raise BackupError(f"respaldo no encontrado: {ruta_respaldo}")
        try:
            self._verificar_integridad(ruta_respaldo)
        except BackupError as exc:
            raise BackupError(f"respaldo corrupto: {exc}") from exc

        db_path = self.ruta_base_datos
        previo: Path | None = db_path.with_name(f"{db_path.name}.pre_restore_{_timestamp()}")
        try:
            _copiar(db_path, previo)
            logger.info("Base actual respaldada en: %s", previo)
        except OSError as exc:
            logger.warning("No se pudo respaldar la base actual: %s", exc)
            previo = None

        try:
            _copiar(ruta_respaldo, db_path)
        except OSError as exc:
            raise BackupError(f"error restaurando desde respaldo: {exc}") from exc
        logger.info("Restauración completada desde: %s", ruta_respaldo)
        return previo