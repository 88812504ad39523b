"""Service Entry Point

Starts the trivelastic HTTP service: loads configuration from the
environment, configures logging, builds the indexing client and the
single process-wide worker pool, then serves HTTP with uvicorn.

Usage:
    python -m src.run_server --port 8080 --workers 8
"""

import argparse
import logging
import os

import uvicorn

from src.trivelastic import config as config_mod
from src.trivelastic.errors import ConfigError
from src.trivelastic.indexing import IndexingClient
from src.trivelastic.logs import configure_logging
from src.trivelastic.pool import WorkerPool
from src.trivelastic.server import create_app


def main(argv=None) -> int:
    """
    CLI entrypoint for the service.

    Returns a Unix-style exit code: 0 after a clean shutdown, 1 when the
    configuration is unusable (nothing is bound in that case).
    """
    parser = argparse.ArgumentParser(
        description="Sanitize JSON documents and forward them to Elasticsearch"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Interface to listen on (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listen port, overrides PORT",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker pool size, overrides WORKER_COUNT",
    )
    args = parser.parse_args(argv)

    log_config = config_mod.load_log_config(os.environ)
    configure_logging(log_config.level, log_config.json_format)
    logger = logging.getLogger("trivelastic")

    try:
        config = config_mod.load_config()
    except ConfigError as e:
        logger.error("Failed to load configuration: %s", e, extra={"component": "main"})
        return 1

    port = args.port or config.port
    workers = args.workers or config.workers
    if workers < 1:
        logger.error("Worker count must be positive, got %d", workers)
        return 1

    indexer = IndexingClient(config.target, logger=logging.getLogger("trivelastic.elasticsearch"))
    pool = WorkerPool(workers, indexer, logger=logging.getLogger("trivelastic.worker_pool"))
    app = create_app(pool, logger=logging.getLogger("trivelastic.server"))

    logger.info(
        "Starting HTTP server on %s:%d with %d workers",
        args.host,
        port,
        workers,
        extra={"component": "main", "port": port, "workers": workers},
    )
    try:
        uvicorn.run(app, host=args.host, port=port, log_config=None)
    finally:
        pool.shutdown()
        indexer.close()
        logger.info("Shutdown complete")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
