"""
Server startup module for FlowChat application.
Provides the entry point for starting the blob store emulator.
"""

from FlowChat.api.routes import run

__all__ = ['server']


def server(host=None, port=None, storage_dir=None):
    """
    Start the blob store emulator.

    Args:
        host (str): Bind address (default: localhost)
        port (int): Port number to listen on (default: 8787)
        storage_dir (str): Directory holding stored objects (default: ./local_storage)
    """
    try:
        run(host=host, port=port, storage_dir=storage_dir)
    except KeyboardInterrupt:
        print("Closed by user.")
