"""Configuration settings for arequest."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import logging

    from .transport import Transport

DEFAULT_USERAGENT = "curl/7"


@dataclass
class ClientConfig:
    """Configuration for arequest.

    Attributes:
        useragent: Default User-Agent for calls that do not set one.
        followlocation: Whether calls follow redirects by default.
        ssl_verifypeer: Whether calls verify TLS certificates by default.
            Disabled by default for hosts without a CA trust store; enable it
            for general-purpose deployments.
        transport: Transport provider. If None, an AiohttpTransport is used.
        logger: Logger instance for structured logging. If None, uses module logger.
        encoding: Text encoding used to decode response bodies.

    """

    useragent: str = DEFAULT_USERAGENT
    followlocation: bool = True
    ssl_verifypeer: bool = False
    transport: Transport | None = None
    logger: logging.Logger | None = None
    encoding: str = "utf-8"
