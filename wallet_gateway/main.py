"""
Entry point for the wallet gateway server.
"""
import logging
import sys
from typing import Optional

import uvicorn

from .app import create_app
from .config import load_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Log to stdout and, when log_file is set, to a file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


def app_factory():
    """Application factory used by ``uvicorn --factory`` and reload mode."""
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    return create_app(settings)


def main(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False):
    """Main function."""
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)

    host = host or settings.host
    port = port or settings.port
    logger.info(f"Starting Solana Wallet Gateway on {host}:{port}")
    logger.info(f"RPC endpoints: {len(settings.rpc_endpoints)}, bridge tokens: {len(settings.bridge_tokens)}")
    if not settings.gateway_api_key:
        logger.warning("GATEWAY_API_KEY not set: transaction relay routes are unauthenticated")

    if reload:
        uvicorn.run("wallet_gateway.main:app_factory", factory=True, host=host, port=port, reload=True)
    else:
        uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
