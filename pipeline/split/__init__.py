from .engine import SplitEngine, SplitResult, DetectionOutput, parse_detection, manual_detection
from .prompt import DETECTION_PROMPT, SPLIT_DETECTION_RESPONSE_FORMAT

__all__ = [
    "SplitEngine",
    "SplitResult",
    "DetectionOutput",
    "parse_detection",
    "manual_detection",
    "DETECTION_PROMPT",
    "SPLIT_DETECTION_RESPONSE_FORMAT",
]
