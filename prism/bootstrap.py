"""
Adapter wiring: builds the registry from settings at process start
"""

import logging
from typing import Optional

from .adapter import ModelAdapter
from .config import AdapterSettings, Settings
from .glm_adapter import GLMAdapter, DEFAULT_HEALTH_MODEL
from .mock_adapter import MockAdapter
from .registry import AdapterRegistry

logger = logging.getLogger(__name__)


def mask_api_key(api_key: Optional[str]) -> str:
    """Show only the first 8 characters of a key"""
    if not api_key or len(api_key) <= 8:
        return "***"
    return api_key[:8] + "..."


def build_adapter(kind: str, cfg: AdapterSettings, buffer_size: int = 10) -> Optional[ModelAdapter]:
    """Create the adapter for one configured backend kind, or None if the kind is unknown"""
    if kind == "glm":
        logger.info(f"GLM adapter created (API key: {mask_api_key(cfg.api_key)})")
        return GLMAdapter(
            api_key=cfg.api_key or "",
            base_url=cfg.base_url,
            timeout=cfg.timeout,
            health_model=cfg.health_model or (cfg.models[0] if cfg.models else DEFAULT_HEALTH_MODEL),
            buffer_size=buffer_size,
        )
    if kind == "mock":
        logger.info("Mock adapter created")
        return MockAdapter(buffer_size=buffer_size)
    return None


def build_registry(settings: Settings) -> AdapterRegistry:
    """
    Bind every configured model name to its adapter.

    A model name configured twice raises AdapterAlreadyRegisteredError, which
    is meant to stop the process before it serves any request.
    """
    registry = AdapterRegistry()

    for kind, cfg in settings.adapters.items():
        adapter = build_adapter(kind, cfg, buffer_size=settings.stream_buffer)
        if adapter is None:
            logger.warning(f"Skipping unsupported adapter: {kind}")
            continue
        for model_name in cfg.models:
            registry.register(model_name, adapter)

    logger.info(f"Registered models: {registry.list_models()}")
    return registry
