"""
Agent wiring: the process-lifetime reflectors plus the worker registry.
"""

import logging
from typing import Dict, List

from .core.config import Config
from .reflector import REFLECTOR_TYPES, Reflector
from .registry import WorkerRegistry


class Agent:
    """Starts one reflector per configured protocol and owns the registry."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.registry = WorkerRegistry(config.worker)
        self._reflectors: List[Reflector] = []

    def start(self) -> None:
        """Start the reflectors. A bind failure stops those already started."""
        section = self.config.reflector
        for protocol in section.protocols:
            reflector = REFLECTOR_TYPES[protocol](section.for_protocol(protocol))
            try:
                reflector.start()
            except Exception:
                self.stop_reflectors()
                raise
            self._reflectors.append(reflector)

        self.logger.info(f"Agent started with reflectors {self.reflectors()}")

    def reflectors(self) -> Dict[str, int]:
        """Map each running reflector's protocol to its port."""
        return {r.proto: r.port for r in self._reflectors}

    def stop_reflectors(self) -> None:
        for reflector in self._reflectors:
            reflector.stop()
        self._reflectors.clear()

    def shutdown(self) -> None:
        """Stop every worker and reflector."""
        self.registry.reset_all()
        self.stop_reflectors()
        self.logger.info("Agent shut down")
