"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, no string-key
dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    Override what you need::

        app = Enlighten(AppConfig(subdirectory="/blog", port=3000))
    """

    # Server (serve_forever / make_server)
    host: str = ""
    port: int = 8080
    threaded: bool = True

    # Routing: prefix stripped from request paths; no trailing slash
    subdirectory: str = ""

    # Also capture print() output into the response body. Swaps
    # sys.stdout, so only safe with threaded=False.
    capture_stdout: bool = False

    # Response defaults
    content_type: str = "text/html"
    charset: str = "utf-8"

    # Logging, applied by serve_forever
    log_level: str = "info"
