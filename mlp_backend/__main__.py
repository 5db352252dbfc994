"""
Run the API server: ``python -m mlp_backend``.

With the default gevent async mode the standard library is monkey-patched
before anything else is imported, so the network lock and the request
handlers cooperate as greenlets.
"""

import os

if (os.environ.get('SOCKETIO_ASYNC_MODE') or 'gevent') == 'gevent':
    from gevent import monkey
    monkey.patch_all()

import sys
import logging

from mlp_backend.api_server import main
from mlp_backend.config import ServerConfig

logger = logging.getLogger('mlp_backend')


if __name__ == '__main__':
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        main(config)
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {config.port} is already in use.")
            sys.exit(1)
        else:
            raise
