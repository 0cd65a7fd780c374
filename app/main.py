import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

# Importar la función de configuración de logging
from app.core.logging_config import setup_logging

# Llamar a la configuración de logging ANTES de importar/crear otros elementos
setup_logging()

from app.api.v1.api import api_router
from app.core.config import get_settings
from app.middleware.timing import TimingMiddleware
from app.middleware.rate_limit import limiter, custom_rate_limit_exceeded_handler
from app.core.scheduler import init_scheduler, shutdown_scheduler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

logger = logging.getLogger(__name__)

# Obtener la instancia de configuración al inicio del módulo
settings_instance = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Lifespan: Startup iniciado...")

    # Iniciar el sweeper de reservas (primera pasada inmediata)
    app.state.scheduler = None
    if settings_instance.SCHEDULER_ENABLED:
        try:
            app.state.scheduler = init_scheduler()
            logger.info("Lifespan: Scheduler inicializado.")
        except Exception as e:
            logger.error(f"Lifespan: Error al inicializar scheduler: {e}", exc_info=True)
    else:
        logger.info("Lifespan: Scheduler deshabilitado (SCHEDULER_ENABLED=False).")

    yield # Aplicación en ejecución

    logger.info("Lifespan: Shutdown iniciado...")

    # Apagar el scheduler
    if app.state.scheduler:
        try:
            shutdown_scheduler()
            logger.info("Scheduler shut down.")
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}", exc_info=True)

app = FastAPI(
    title=settings_instance.PROJECT_NAME,
    description=settings_instance.PROJECT_DESCRIPTION,
    version=settings_instance.VERSION,
    openapi_url=f"{settings_instance.API_V1_STR}/openapi.json",
    docs_url=f"{settings_instance.API_V1_STR}/docs",
    redoc_url=f"{settings_instance.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Configurar rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Errores de validación del cuerpo o de los parámetros: 400 con el primer mensaje como detail."""
    errors = jsonable_encoder(exc.errors())
    detail = errors[0]["msg"].removeprefix("Value error, ") if errors else "Invalid request"
    logger.info(f"Petición inválida {request.method} {request.url.path}: {detail}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": detail, "errors": errors},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Middleware: Recibida petición: {request.method} {request.url}")
    # Sanitizar headers antes de loguear para evitar fuga de secretos
    if settings_instance.DEBUG_MODE:
        headers_dict = dict(request.headers)
        auth_header = headers_dict.get("authorization")
        if auth_header:
            if auth_header.startswith("Bearer "):
                token = auth_header[7:]
                headers_dict["authorization"] = f"Bearer ****{token[-6:]}" if len(token) > 6 else "Bearer ****"
            else:
                headers_dict["authorization"] = "***masked***"
        if "cookie" in headers_dict:
            headers_dict["cookie"] = "***masked***"
        logger.debug(f"Middleware: Headers: {headers_dict}")

    response = await call_next(request)

    logger.info(f"Middleware: Enviando respuesta: {response.status_code}")
    return response

# Añadir middleware para medir el tiempo de respuesta
app.add_middleware(TimingMiddleware)

# Límites por defecto de slowapi para todas las rutas
app.add_middleware(SlowAPIMiddleware)

# Lista de orígenes permitidos para CORS
origins = [str(origin).rstrip("/") for origin in settings_instance.BACKEND_CORS_ORIGINS]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,  # 24 horas en segundos
)

# Incluir routers
app.include_router(api_router, prefix=settings_instance.API_V1_STR)

# Ruta raíz
@app.get("/")
def root():
    return {
        "message": "Gym Booking API",
        "docs": f"{settings_instance.API_V1_STR}/docs",
    }

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings_instance.DEBUG_MODE)
