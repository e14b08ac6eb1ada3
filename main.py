"""
prism: OpenAI-compatible AI gateway

Main entry point for the application.
"""

from prism.logging_config import setup_logging
from prism.config import load_settings
from prism.bootstrap import build_registry
from prism.api import create_app

# Load settings before logging so the configured level applies
settings = load_settings()
logger = setup_logging(settings.server.log_level)

# Register every configured model before the app accepts requests
try:
    registry = build_registry(settings)
except Exception as e:
    logger.error(f"Failed to register adapters: {e}")
    logger.info("Please check the adapters section of your configuration")
    raise

app = create_app(registry)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_level=settings.server.log_level.lower())
