"""
Seasonboard - Application Entry Point
=====================================

Bootstrap
---------
- Config validation
- Logging initialization
- Component construction (Redis, blob store, upstream client, service)
- HTTP server lifecycle (uvicorn)
- Graceful shutdown
"""

import asyncio
import sys
from dataclasses import asdict
from typing import Optional

import uvicorn

from seasonboard.api.app import create_app
from seasonboard.api.components import AppComponents, build_components
from seasonboard.core.config.config import Config
from seasonboard.core.logging.logger import (
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> AppComponents:
    """Validate configuration and connect every backend before serving."""
    logger.info("========== SEASONBOARD INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    try:
        components = await build_components()
        logger.info("✓ Components initialized")
    except Exception as exc:
        logger.critical(f"Component initialization failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return components


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown(components: Optional[AppComponents]) -> None:
    logger.info("========== SEASONBOARD SHUTDOWN START ==========")

    if components is not None:
        try:
            await components.close()
            logger.info("✓ Components closed")
        except Exception as exc:
            logger.error(f"Component shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================

async def main() -> None:
    """
    Lifecycle:
        1. Validate configuration
        2. Connect Redis, build blob store, upstream client and service
        3. Serve HTTP until SIGINT / SIGTERM
        4. Close every component
    """
    components: Optional[AppComponents] = None

    try:
        components = await _startup()

        server = uvicorn.Server(
            uvicorn.Config(
                create_app(components),
                host=Config.HTTP_HOST,
                port=Config.HTTP_PORT,
                log_config=None,
            )
        )
        logger.info(
            "Starting HTTP server",
            extra={"host": Config.HTTP_HOST, "port": Config.HTTP_PORT},
        )
        await server.serve()

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    finally:
        await _shutdown(components)


def run() -> None:
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server manually stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("Logging health at exit", extra=asdict(get_logging_health()))
        shutdown_logging()


if __name__ == "__main__":
    run()
