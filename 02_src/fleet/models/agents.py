"""Agent configuration model."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Agent:
    """Identity and configuration of one autonomous worker."""

    id: str
    name: str
    personality: str
    model_name: str
    frequency_ms: int  # interval between wake attempts
    tools: list[str] = field(default_factory=list)  # ordered, unique
    is_running: bool = False
    next_wake_time: datetime | None = None
    last_run: datetime | None = None

    def __post_init__(self) -> None:
        if self.frequency_ms <= 0:
            raise ValueError(f"frequency_ms must be positive, got {self.frequency_ms}")
        self.tools = list(dict.fromkeys(self.tools))

    @property
    def frequency_seconds(self) -> float:
        return self.frequency_ms / 1000
