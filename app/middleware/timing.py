import time
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
import logging

logger = logging.getLogger("timing_middleware")

# Umbrales de categoría de velocidad (ms)
SPEED_THRESHOLDS = (
    (1500, "VERY_SLOW"),
    (700, "SLOW"),
    (300, "MEDIUM"),
)


def speed_category(process_time_ms: float) -> str:
    for threshold, category in SPEED_THRESHOLDS:
        if process_time_ms > threshold:
            return category
    return "FAST"


class TimingMiddleware(BaseHTTPMiddleware):
    """
    Middleware que mide el tiempo de respuesta de cada solicitud y lo expone
    en las cabeceras X-Process-Time / X-Process-Speed.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.time()

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000  # En milisegundos
        category = speed_category(process_time)

        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
        response.headers["X-Process-Speed"] = category

        if category in ("SLOW", "VERY_SLOW"):
            logger.warning(f"{request.method} {request.url.path} tardó {process_time:.2f}ms ({category})")

        return response
