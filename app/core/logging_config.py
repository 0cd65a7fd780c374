import logging
import sys
import os
from datetime import datetime
from app.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(filename)s:%(lineno)d | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_DIR = "logs"

# El barrido de reservas se ejecuta cada minuto; sus ejecuciones no deben inundar el log
QUIET_LOGGERS = {
    "uvicorn.access": logging.INFO,
    "apscheduler": logging.WARNING,
    "apscheduler.executors.default": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def setup_logging():
    """
    Configura el logging de la API de reservas.

    - Consola (stdout) siempre; nivel DEBUG si DEBUG_MODE, INFO en otro caso.
    - Fichero diario logs/bookings_YYYYMMDD.log si LOG_TO_FILE.
    - Los loggers de la aplicación (app.*) heredan del raíz, así las
      transiciones de reservas y los ticks del sweeper salen con el mismo formato.
    """
    settings = get_settings()
    root = logging.getLogger()
    level = logging.DEBUG if settings.DEBUG_MODE else logging.INFO
    root.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    # Uvicorn puede haber instalado sus handlers antes
    if root.hasHandlers():
        root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        os.makedirs(LOG_DIR, exist_ok=True)
        log_file = os.path.join(LOG_DIR, f"bookings_{datetime.now().strftime('%Y%m%d')}.log")
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name, logger_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(logger_level)

    root.info(
        "Logging de %s configurado (nivel %s, política de reservas %s)",
        settings.PROJECT_NAME, logging.getLevelName(level), settings.BOOKING_POLICY
    )
