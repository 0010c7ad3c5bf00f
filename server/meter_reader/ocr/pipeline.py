"""
Reading pipeline: quality gate -> preprocessing strategies -> recognizer ->
text filter -> value extraction, for a single frame.
The pipeline keeps no state between calls, so a failed attempt can always
be retried.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from meter_reader import config
from meter_reader.errors import CaptureCancelled, NoValueFound
from meter_reader.models.filters import FilterConfig, FilterResult
from meter_reader.models.frame import Frame
from meter_reader.models.meter_profile import MeterProfile, get_profile
from meter_reader.models.quality import QualityScore
from meter_reader.models.recognition import RecognitionResult
from meter_reader.models.scan import ExtractedValue
from meter_reader.ocr.normalizer import extract_first
from meter_reader.ocr.preprocessing import ImagePreprocessor
from meter_reader.ocr.quality import QualityThresholds, assess_quality, check_quality
from meter_reader.ocr.recognizer import TextRecognizer
from meter_reader.ocr.strategies import RecognitionStrategy, default_strategies, run_strategies
from meter_reader.ocr.text_filter import filter_text

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass
class ReadingOutcome:
    value: ExtractedValue
    profile: MeterProfile
    quality: QualityScore
    recognition: RecognitionResult
    filter_result: FilterResult
    strategy: Optional[str]
    attempts: int

    def to_dict(self) -> dict:
        return {
            "field": self.profile.name,
            "raw": self.value.raw,
            "normalized": self.value.normalized,
            "quality": self.quality.to_dict(),
            "recognition": self.recognition.to_dict(),
            "filter": self.filter_result.to_dict(),
            "strategy": self.strategy,
            "attempts": self.attempts,
        }


class ReadingPipeline:
    """Extracts one labeled reading from a frame."""

    def __init__(
        self,
        recognizer: TextRecognizer,
        preprocessor: Optional[ImagePreprocessor] = None,
        strategies: Optional[List[RecognitionStrategy]] = None,
        thresholds: QualityThresholds = QualityThresholds(),
        acceptance_threshold: float = config.ACCEPTANCE_THRESHOLD,
    ):
        self.recognizer = recognizer
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.strategies = strategies if strategies is not None else default_strategies(self.preprocessor)
        self.thresholds = thresholds
        self.acceptance_threshold = acceptance_threshold

    def process(
        self,
        frame: Frame,
        profile: Optional[MeterProfile] = None,
        filter_config: Optional[FilterConfig] = None,
        progress: Optional[ProgressCallback] = None,
        cancelled: Optional[Callable[[], bool]] = None,
    ) -> ReadingOutcome:
        """
        Recognize a reading from a frame.

        Args:
            frame: Captured or uploaded frame
            profile: Reading to extract (defaults to FR1)
            filter_config: Text filter applied before extraction (defaults keep all lines)
            progress: Called with 0-100 as stages complete
            cancelled: Polled between stages; a True result aborts the attempt

        Returns:
            ReadingOutcome with the extracted value and intermediate results

        Raises:
            QualityRejected: frame failed the quality gate
            NoValueFound: label/unit pattern absent from both filtered and raw text
            CaptureCancelled: cancelled() returned True
            RecognizerUnavailable: recognizer cannot be used
        """
        profile = profile or get_profile("fr1")
        filter_config = filter_config or FilterConfig()

        def report(value: int):
            if cancelled is not None and cancelled():
                raise CaptureCancelled("Capture was cancelled")
            if progress is not None:
                progress(value)

        logger.info(f"Starting {profile.label} recognition for {frame.width}x{frame.height} frame")
        report(0)

        # 1. Quality gate
        quality = assess_quality(frame)
        logger.info(
            f"Frame quality: score={quality.score}, brightness={quality.brightness:.2f}, "
            f"sharpness={quality.sharpness:.3f}, glare={quality.glare:.3f}"
        )
        check_quality(quality, self.thresholds)
        report(10)

        # 2. Preprocessing variants + recognizer, one call per strategy
        def on_attempt(attempt: int, total: int):
            report(10 + int(70 * attempt / max(1, total)))

        outcome = run_strategies(
            frame,
            self.recognizer,
            self.strategies,
            character_whitelist=profile.character_whitelist,
            segmentation_mode=profile.segmentation_mode,
            acceptance_threshold=self.acceptance_threshold,
            on_attempt=on_attempt,
        )
        recognition = outcome.result
        report(80)

        # 3. Text filtering
        filter_result = filter_text(recognition.raw_text, filter_config)
        report(90)

        # 4. Extraction: filtered text first, raw text as fallback
        value = extract_first([filter_result.filtered_text, recognition.raw_text], profile)
        if value is None:
            logger.warning(
                f"No {profile.label} value found. OCR text: {recognition.raw_text!r}, "
                f"filtered: {filter_result.filtered_text!r}"
            )
            raise NoValueFound(
                f"Could not find {profile.label} value in the image",
                raw_text=recognition.raw_text,
                filtered_text=filter_result.filtered_text,
            )
        report(95)

        logger.info(
            f"Recognized {profile.label}={value.normalized} (raw {value.raw}) with strategy "
            f"'{outcome.strategy}' after {outcome.attempts} attempt(s)"
        )
        return ReadingOutcome(
            value=value,
            profile=profile,
            quality=quality,
            recognition=recognition,
            filter_result=filter_result,
            strategy=outcome.strategy,
            attempts=outcome.attempts,
        )
