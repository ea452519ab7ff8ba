#!/usr/bin/env python
"""
Start the crop lookup API with uvicorn.
"""

import os
import sys
import argparse
import logging
import uvicorn

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from crop_locator.infra.config import get_config
from crop_locator.observability.logging_utils import init_logging


logger = logging.getLogger(__name__)


def main():
    cfg = get_config()
    parser = argparse.ArgumentParser(
        description="Start the crop lookup API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python run_web.py                       # default port from FASTAPI_PORT
    python run_web.py --port 8080           # listen on 8080
    python run_web.py --cache-store memory  # no persistence
    python run_web.py --reload              # development mode
        """
    )

    parser.add_argument(
        '--host',
        type=str,
        default='0.0.0.0',
        help='bind address (default: 0.0.0.0)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=cfg.fastapi_port,
        help=f'port (default: {cfg.fastapi_port})'
    )

    parser.add_argument(
        '--reload',
        action='store_true',
        help='enable auto reload'
    )

    parser.add_argument(
        '--cache-store',
        type=str,
        choices=['sqlite', 'memory'],
        default=None,
        help='crop cache backend (default: CROP_CACHE_STORE)'
    )

    args = parser.parse_args()

    if args.cache_store:
        os.environ['CROP_CACHE_STORE'] = args.cache_store
        get_config.cache_clear()

    init_logging(log_path=get_config().log_path, level=get_config().log_level)
    host = args.host if args.host != '0.0.0.0' else 'localhost'
    logger.info(f"Starting crop lookup API: http://{host}:{args.port}")
    logger.info(f"LLM provider: {get_config().llm_provider}")
    logger.info(f"Crop cache store: {get_config().crop_cache_store}")

    uvicorn.run(
        "crop_locator.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info"
    )


if __name__ == '__main__':
    main()
