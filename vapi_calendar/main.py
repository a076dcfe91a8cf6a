from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from vapi_calendar.core.config import settings
from vapi_calendar.core.security import InvalidSecretError
from vapi_calendar.api import webhook, calendar_function
from vapi_calendar.api.common import server_error_response
from vapi_calendar.core.logger import setup_logging, logger
from contextlib import asynccontextmanager
from datetime import datetime

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT}, TZ={settings.TIMEZONE})")
    if not settings.VAPI_SECRET:
        logger.warning("⚠️ VAPI_SECRET is empty, all function calls will be rejected")
    yield
    # Shutdown
    logger.info("🛑 Shutting down backend")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-vapi-secret"],
)

@app.exception_handler(InvalidSecretError)
async def invalid_secret_handler(request: Request, exc: InvalidSecretError):
    return JSONResponse(status_code=401, content={"result": str(exc)})

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"🔥 UNHANDLED ERROR: {exc}")
    return server_error_response(exc, include_details=True)

# Include routers
app.include_router(webhook.router, tags=["Webhook"])
app.include_router(calendar_function.router, tags=["Function"])

@app.get("/")
async def health_check():
    return {'status': 'active', 'time': datetime.now().isoformat()}

@app.get("/health")
async def health_check_std():
    return {"status": "ok", "environment": settings.ENVIRONMENT, "timestamp": datetime.now().isoformat()}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("vapi_calendar.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
