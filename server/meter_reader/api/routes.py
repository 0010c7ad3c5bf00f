"""
API routes for the meter reader backend.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from meter_reader.errors import (
    AlreadyProcessing,
    CaptureCancelled,
    MeterReaderError,
    NoValueFound,
    PreprocessFailure,
    QualityRejected,
    RecognizerTimeout,
    RecognizerUnavailable,
)
from meter_reader.models import FilterConfig, Frame, get_profile
from meter_reader.models.meter_profile import DEFAULT_PROFILES
from meter_reader.ocr.normalizer import extract_reading
from meter_reader.ocr.text_filter import filter_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

VALID_EXTENSIONS = [".jpg", ".jpeg", ".png", ".heic", ".heif", ".gif", ".webp", ".bmp"]
# Starlette renamed the 422 constant; the literal works across versions
HTTP_422 = 422


class CaptureRequest(BaseModel):
    field: str = "fr1"
    filters: Optional[Dict[str, Any]] = None


class FilterRequest(BaseModel):
    text: str
    filters: Optional[Dict[str, Any]] = None


class ExtractRequest(BaseModel):
    text: str
    field: str = "fr1"


class ManualScanRequest(BaseModel):
    value: str
    field: str = "fr1"
    ocr_text: str = ""
    filtered_text: Optional[str] = None


class MonitorRequest(BaseModel):
    enabled: bool = True
    auto_capture: bool = False


def _raise_http(error: Exception) -> NoReturn:
    """Translate a pipeline error into an HTTPException."""
    if isinstance(error, QualityRejected):
        raise HTTPException(
            status_code=HTTP_422,
            detail={
                "error": "quality_rejected",
                "reason": error.reason,
                "quality": error.score.to_dict() if error.score else None,
            },
        )
    if isinstance(error, NoValueFound):
        raise HTTPException(
            status_code=HTTP_422,
            detail={
                "error": "no_value_found",
                "message": str(error),
                "raw_text": error.raw_text,
                "filtered_text": error.filtered_text,
            },
        )
    if isinstance(error, PreprocessFailure):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail={"error": "preprocess_failure", "message": str(error)})
    if isinstance(error, AlreadyProcessing):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail={"error": "already_processing", "message": str(error)})
    if isinstance(error, CaptureCancelled):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail={"error": "cancelled", "message": str(error)})
    if isinstance(error, RecognizerUnavailable):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail={"error": "recognizer_unavailable", "message": str(error)})
    if isinstance(error, RecognizerTimeout):
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                            detail={"error": "recognizer_timeout", "message": str(error)})
    logger.error(f"Error processing request: {str(error)}", exc_info=error)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "internal", "message": f"Error processing image: {str(error)}"},
    )


def _parse_filters(filters: Optional[Dict[str, Any]]) -> FilterConfig:
    try:
        return FilterConfig.from_dict(filters)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail={"error": "invalid_filters", "message": str(e)})


def _validate_field(field: str) -> str:
    field_lower = (field or "").lower()
    if field_lower not in DEFAULT_PROFILES:
        logger.error(f"Invalid field: '{field}'")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid field. Must be one of: {', '.join(DEFAULT_PROFILES)}. Received: '{field}'",
        )
    return field_lower


def _validate_image(file: UploadFile) -> None:
    # Check content-type first, then fall back to the file extension
    if file.content_type and file.content_type.startswith("image/"):
        return
    if file.filename and Path(file.filename).suffix.lower() in VALID_EXTENSIONS:
        logger.info(f"File validated by extension: {Path(file.filename).suffix.lower()}")
        return
    logger.error(f"Invalid file. content_type: {file.content_type}, filename: {file.filename}")
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"File must be an image. Received content_type: {file.content_type}, filename: {file.filename}",
    )


async def _read_frame(file: UploadFile) -> Frame:
    _validate_image(file)
    content = await file.read()
    try:
        return Frame.from_bytes(content)
    except PreprocessFailure as e:
        _raise_http(e)


async def _run_capture(request: Request, frame: Frame, field: str, filters: FilterConfig) -> JSONResponse:
    coordinator = request.app.state.coordinator
    try:
        result = await coordinator.capture(frame, get_profile(field), filters)
    except MeterReaderError as e:
        _raise_http(e)

    logger.info(f"Capture successful: {field}={result.record.normalized} (raw {result.record.raw})")
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "success", "message": "Reading recognized successfully", **result.to_dict()},
    )


@router.post("/upload-image")
async def upload_image(
    request: Request,
    file: UploadFile = File(...),
    field: str = Form("fr1"),
    filters: Optional[str] = Form(None),
):
    """
    Upload a meter image and recognize its reading.

    Args:
        file: Image file to upload
        field: Reading to extract (fr1, t1)
        filters: Optional JSON-encoded filter configuration

    Returns:
        JSON response with the saved scan record and recognition details
    """
    logger.info(f"Received upload: filename={file.filename}, content_type={file.content_type}, field={field}")
    field = _validate_field(field)
    try:
        filter_data = json.loads(filters) if filters else None
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail={"error": "invalid_filters", "message": f"filters is not valid JSON: {e}"})
    filter_config = _parse_filters(filter_data)
    frame = await _read_frame(file)
    return await _run_capture(request, frame, field, filter_config)


@router.post("/frames")
async def publish_frame(request: Request, file: UploadFile = File(...)):
    """Publish the latest live frame for quality monitoring and capture."""
    frame = await _read_frame(file)
    sequence = request.app.state.frame_buffer.publish(frame)
    return {"status": "ok", "frame_sequence": sequence, "width": frame.width, "height": frame.height}


@router.post("/capture")
async def capture_latest(request: Request, body: Optional[CaptureRequest] = None):
    """Recognize the reading in the latest live frame."""
    body = body or CaptureRequest()
    field = _validate_field(body.field)
    filter_config = _parse_filters(body.filters)
    frame = request.app.state.frame_buffer.latest()
    if frame is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail={"error": "no_frame", "message": "No live frame available"})
    return await _run_capture(request, frame, field, filter_config)


@router.get("/capture/status")
async def capture_status(request: Request):
    coordinator = request.app.state.coordinator
    return {
        "processing": coordinator.is_processing,
        "progress": coordinator.progress.value,
        "last_error": coordinator.last_error,
    }


@router.delete("/capture")
async def cancel_capture(request: Request):
    cancelled = request.app.state.coordinator.cancel()
    return {"cancelled": cancelled}


@router.get("/quality")
async def live_quality(request: Request):
    monitor = request.app.state.monitor
    return {"running": monitor.running, "auto_capture": monitor.auto_capture, **monitor.snapshot.to_dict()}


@router.post("/quality/monitor")
async def configure_monitor(request: Request, body: MonitorRequest):
    monitor = request.app.state.monitor
    monitor.auto_capture = body.auto_capture
    if body.enabled:
        monitor.start()
    else:
        await monitor.stop()
    return {"running": monitor.running, "auto_capture": monitor.auto_capture}


@router.post("/filter")
async def filter_endpoint(body: FilterRequest):
    """Filter and categorize text lines."""
    result = filter_text(body.text, _parse_filters(body.filters))
    return result.to_dict()


@router.post("/extract")
async def extract_endpoint(body: ExtractRequest):
    """Extract a reading from text (e.g. text typed in for testing)."""
    profile = get_profile(_validate_field(body.field))
    value = extract_reading(body.text, profile)
    if value is None:
        _raise_http(NoValueFound(f"Could not find {profile.label} value in text", raw_text=body.text))
    return {"field": profile.name, "raw": value.raw, "normalized": value.normalized}


@router.get("/scans")
async def list_scans(request: Request):
    """Scan history, newest first."""
    return {"scans": [s.to_dict() for s in request.app.state.store.list()]}


@router.post("/scans/manual")
async def add_manual_scan(request: Request, body: ManualScanRequest):
    """Save a user-entered value as a new record."""
    field = _validate_field(body.field)
    try:
        record = request.app.state.store.add_manual(
            body.value, ocr_text=body.ocr_text, filtered_text=body.filtered_text, field=field
        )
    except NoValueFound as e:
        _raise_http(e)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=record.to_dict())
