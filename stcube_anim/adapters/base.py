from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator

from stcube_anim.models.events import Event


class StcubeEventSource(ABC):
    @abstractmethod
    def stream_events(self) -> Iterator[Event]:
        ...


class StcubeStepper(ABC):
    @abstractmethod
    def reset(self) -> None:
        ...

    @abstractmethod
    def step(self, n: int = 1) -> None:
        ...

    @abstractmethod
    def stream_events(self) -> Iterator[Event]:
        ...
