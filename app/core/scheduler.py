from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timezone
from typing import Callable, Optional
import logging

from app.core.config import get_settings
from app.core.timezone_utils import Clock, utc_now
from app.db.session import get_async_db_for_jobs
from app.services.booking import BookingService

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = 'booking_completion'

# Variable global para mantener referencia al sweeper de la aplicación
_sweeper = None


class BookingSweeper:
    """
    Barrido periódico de reservas terminadas.

    Cada tick pasa a COMPLETED todas las reservas CONFIRMED cuyo end_time ya
    pasó. Se ejecuta una vez al arrancar y luego cada `interval_seconds`.
    Un tick fallido se registra y el siguiente vuelve a intentarlo.

    La fábrica de sesiones y el reloj son inyectables para poder probar el
    barrido sin un timer real.
    """

    def __init__(
        self,
        session_factory: Callable = get_async_db_for_jobs,
        clock: Clock = utc_now,
        interval_seconds: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.interval_seconds = interval_seconds or get_settings().BOOKING_SWEEP_INTERVAL_SECONDS
        self._service = BookingService(clock=clock)
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def run_once(self) -> int:
        """
        Ejecuta una pasada del barrido.

        Returns:
            Número de reservas marcadas como COMPLETED (0 si no había ninguna)
        """
        async with self.session_factory() as db:
            return await self._service.mark_past_bookings_completed(db)

    async def _tick(self) -> None:
        logger.debug("Running scheduled task: booking_completion")
        try:
            count = await self.run_once()
            logger.debug(f"Barrido de reservas completado: {count} actualizadas")
        except Exception as e:
            logger.error(f"Error in booking completion sweep: {str(e)}", exc_info=True)

    def start(self) -> None:
        """Arranca el barrido. Llamar a start() con el sweeper activo no hace nada."""
        if self.is_running:
            logger.debug("Booking sweeper ya está en ejecución")
            return

        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            next_run_time=datetime.now(timezone.utc),  # primera pasada inmediata
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        logger.info(f"Booking sweeper started (cada {self.interval_seconds}s)")

    def stop(self) -> None:
        """Detiene el barrido. Llamar a stop() con el sweeper parado no hace nada."""
        if not self.is_running:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Booking sweeper stopped")


def init_scheduler() -> BookingSweeper:
    """
    Inicializa y arranca el sweeper de la aplicación
    """
    global _sweeper

    if _sweeper is None:
        _sweeper = BookingSweeper()
    _sweeper.start()
    return _sweeper


def shutdown_scheduler() -> None:
    global _sweeper
    if _sweeper is not None:
        _sweeper.stop()
        _sweeper = None

