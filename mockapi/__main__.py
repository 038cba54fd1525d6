"""Serve the mock host API: python -m mockapi PORT.

Point an extension at it with AWS_LAMBDA_RUNTIME_API=127.0.0.1:PORT.
"""

import logging
import sys

import uvicorn

from lambda_extensions.logging_config import setup_logging
from lambda_extensions.settings import get_default_settings
from mockapi.server import MockExtensionAPI

logger = logging.getLogger(__name__)


def main() -> None:
    if len(sys.argv) != 2 or not sys.argv[1].isdigit():
        print("usage: python -m mockapi PORT", file=sys.stderr)
        sys.exit(2)
    port = int(sys.argv[1])
    setup_logging(get_default_settings())
    logger.info("Mock Lambda host listening on port %d", port)
    uvicorn.run(MockExtensionAPI().app, host="127.0.0.1", port=port, log_level="warning")


if __name__ == "__main__":
    main()
