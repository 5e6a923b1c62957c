"""Abstract transport adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from camille.ai.orchestrator import Orchestrator


class Adapter(ABC):
    """Base class for every front-end that feeds requests to the orchestrator.

    To add a new transport, subclass this and implement all abstract methods.
    """

    def __init__(self, orchestrator: Orchestrator):
        self.orchestrator = orchestrator

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the transport identifier string."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Begin accepting requests."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop accepting requests and release transport resources."""
        ...
