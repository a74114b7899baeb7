"""Run the loan-servicing API with uvicorn."""

import argparse
import logging

import uvicorn

from loan_servicing.api import create_app
from loan_servicing.config import ServiceConfig
from loan_servicing.logging import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``loan-servicing`` console script."""
    config = ServiceConfig.from_env()

    parser = argparse.ArgumentParser(description="Loan servicing HTTP API")
    parser.add_argument("--host", default=config.server.host, help="Bind address")
    parser.add_argument("--port", type=int, default=config.server.port, help="Bind port")
    parser.add_argument(
        "--log-level",
        default=config.log_level.upper(),
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )
    args = parser.parse_args(argv)

    config.log_level = args.log_level
    setup_logging(config.effective_log_level, config.log_format)

    app = create_app(config)
    logger.info("Serving on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
