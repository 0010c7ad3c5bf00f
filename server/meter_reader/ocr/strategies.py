"""
Multi-strategy recognition.
Tries preprocessing variants one after another and keeps the most
confident result, stopping as soon as one is good enough.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from meter_reader import config
from meter_reader.errors import RecognizerFailure, RecognizerTimeout
from meter_reader.models.frame import Frame, PreprocessedImage
from meter_reader.models.recognition import (
    DEFAULT_WHITELIST,
    RecognitionRequest,
    RecognitionResult,
    SegmentationMode,
)
from meter_reader.ocr.preprocessing import ImagePreprocessor
from meter_reader.ocr.recognizer import TextRecognizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecognitionStrategy:
    name: str
    render: Callable[[Frame], PreprocessedImage]


@dataclass
class StrategyOutcome:
    result: RecognitionResult
    strategy: Optional[str]  # None when every strategy failed
    attempts: int


def default_strategies(preprocessor: ImagePreprocessor) -> List[RecognitionStrategy]:
    """Variants in the order they are tried."""
    return [
        RecognitionStrategy("display-optimized", preprocessor.process),
        RecognitionStrategy("high-contrast", preprocessor.high_contrast),
        RecognitionStrategy("unmodified", preprocessor.unmodified),
        RecognitionStrategy("inverted", preprocessor.inverted),
    ]


def run_strategies(
    frame: Frame,
    recognizer: TextRecognizer,
    strategies: Sequence[RecognitionStrategy],
    character_whitelist: str = DEFAULT_WHITELIST,
    segmentation_mode: SegmentationMode = SegmentationMode.SINGLE_WORD,
    acceptance_threshold: float = config.ACCEPTANCE_THRESHOLD,
    on_attempt: Optional[Callable[[int, int], None]] = None,
) -> StrategyOutcome:
    """
    Recognize a frame with each strategy in turn, one recognizer call per strategy.

    Args:
        frame: Frame to recognize
        recognizer: Recognizer to call
        strategies: Ordered preprocessing variants
        character_whitelist: Characters the recognizer may return
        segmentation_mode: Single word or single line
        acceptance_threshold: Stop once a result's confidence exceeds this (0-1)
        on_attempt: Called with (attempt_number, total) after each attempt

    Returns:
        StrategyOutcome with the best result (confidence 0 if every strategy failed)

    Raises:
        RecognizerUnavailable: the engine cannot be used at all
    """
    best_result = RecognitionResult()
    best_strategy = None
    attempts = 0

    for strategy in strategies:
        attempts += 1
        image = strategy.render(frame)
        request = RecognitionRequest(
            image=image,
            character_whitelist=character_whitelist,
            segmentation_mode=segmentation_mode,
        )
        try:
            result = recognizer.recognize(request)
        except (RecognizerTimeout, RecognizerFailure) as e:
            logger.warning(f"Strategy '{strategy.name}' failed: {e}")
            result = None

        if result is not None:
            logger.info(f"Strategy '{strategy.name}': confidence {result.confidence:.2f}, text '{result.raw_text}'")
            if best_strategy is None or result.confidence > best_result.confidence:
                best_result = result
                best_strategy = strategy.name

        if on_attempt is not None:
            on_attempt(attempts, len(strategies))

        if result is not None and result.confidence > acceptance_threshold:
            logger.info(f"Accepting '{strategy.name}' result (confidence {result.confidence:.2f} > {acceptance_threshold})")
            break

    if best_strategy is None:
        logger.warning(f"All {attempts} recognition strategies failed")
    return StrategyOutcome(result=best_result, strategy=best_strategy, attempts=attempts)
