import logging

import uvicorn

from .routes_api import app, configure_store
from FlowChat.config import config

logger = logging.getLogger(__name__)


def run(host=None, port=None, storage_dir=None):
    """
    Run the blob store emulator with Uvicorn server.

    Args:
        host (str): Bind address (default: config.DEFAULT_HOST)
        port (int): Port for the emulator (default: config.DEFAULT_PORT)
        storage_dir (str): Directory holding the stored objects
    """
    host = host or config.DEFAULT_HOST
    port = port or config.DEFAULT_PORT
    store = configure_store(storage_dir or config.STORAGE_DIR)
    logger.info("Blob store emulator running at http://%s:%s", host, port)
    logger.info("Storage dir: %s", store.root)
    uvicorn.run(app, host=host, port=port, log_config=None)
