from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class QualityScore:
    """Frame quality metrics. brightness/sharpness/glare are 0-1, score is 0-100."""

    brightness: float
    sharpness: float
    glare: float
    score: float

    def to_dict(self) -> dict:
        return asdict(self)
