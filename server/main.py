"""
Main entry point for the meter reader backend server.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from meter_reader import config
from meter_reader.api import routes
from meter_reader.capture import CaptureCoordinator, FrameBuffer, QualityMonitor
from meter_reader.ocr.pipeline import ReadingPipeline
from meter_reader.ocr.recognizer import TextRecognizer, create_recognizer
from meter_reader.store import JsonScanStore, ScanStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all incoming requests."""
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        logger.info(f"→ {request.method} {request.url.path}")
        logger.debug(f"  Headers: {dict(request.headers)}")
        if request.url.query:
            logger.info(f"  Query params: {request.url.query}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(f"← {request.method} {request.url.path} - Status: {response.status_code} - Time: {process_time:.3f}s")

        return response


def create_app(
    recognizer: Optional[TextRecognizer] = None,
    store: Optional[ScanStore] = None,
    start_monitor: bool = True,
) -> FastAPI:
    """
    Build the API application.

    Args:
        recognizer: Text recognizer to use (defaults to the configured engine)
        store: Scan history store (defaults to the JSON file under DATA_DIR)
        start_monitor: Start the live quality monitor on startup

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        logger.info("Meter reader API server starting up...")
        engine = recognizer or create_recognizer(config.RECOGNIZER_ENGINE)
        pipeline = ReadingPipeline(engine)
        coordinator = CaptureCoordinator(pipeline, store or JsonScanStore(config.HISTORY_FILE))
        frame_buffer = FrameBuffer()
        monitor = QualityMonitor(frame_buffer, on_auto_capture=coordinator.start)

        app.state.recognizer = engine
        app.state.pipeline = pipeline
        app.state.coordinator = coordinator
        app.state.store = coordinator.store
        app.state.frame_buffer = frame_buffer
        app.state.monitor = monitor

        if start_monitor:
            monitor.start()
        yield

        logger.info("Meter reader API server shutting down...")
        coordinator.cancel()
        await monitor.stop()
        engine.terminate()

    app = FastAPI(
        title="Meter Reader API",
        version="1.0.0",
        description="Backend API for flow meter reading with OCR",
        lifespan=lifespan,
    )

    # Add logging middleware (before CORS)
    app.add_middleware(LoggingMiddleware)

    # Configure CORS for the capture client
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "message": "Meter reader API is running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
