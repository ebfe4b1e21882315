"""
Entry point for FlowChat application.
This module provides a command-line interface to start the blob store
emulator or run a conversation command.
"""

import argparse
import sys

from FlowChat.config import config
from FlowChat.core.logging import auto_configure, get_logging_manager
from FlowChat.start import client, server


def _add_client_options(p):
    p.add_argument('--api', default=None,
                   help='Blob store base URL (default: $FLOW_WORKER_API, unset = local only)')
    p.add_argument('--state', default=None,
                   help=f'Client state directory (default: {config.STATE_DIR})')


def parse(argv=None):
    # Initialize argument parser for command line interface
    parser = argparse.ArgumentParser(prog='flowchat', description='FlowChat starter')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    # Setup emulator command line arguments
    server_parser = subparsers.add_parser('server', help='Startup blob store emulator')
    server_parser.add_argument('--host', default=None,
                               help=f'Listening address (default: {config.DEFAULT_HOST})')
    server_parser.add_argument('--port', type=int, default=None,
                               help=f'Port (default: {config.DEFAULT_PORT})')
    server_parser.add_argument('--storage', default=None,
                               help=f'Storage directory (default: {config.STORAGE_DIR})')

    # Conversation commands
    _add_client_options(subparsers.add_parser('list', help='List conversations'))

    p = subparsers.add_parser('show', help='Show messages of a conversation')
    p.add_argument('conv', help='Conversation id')
    _add_client_options(p)

    _add_client_options(subparsers.add_parser('sync', help='Reload conversations from the backend'))

    p = subparsers.add_parser('create', help='Create a conversation')
    p.add_argument('title', help='Title (A-Z, a-z, 0-9, _, /)')
    _add_client_options(p)

    p = subparsers.add_parser('send', help='Send a text message')
    p.add_argument('conv', help='Conversation id')
    p.add_argument('text', help='Message text')
    _add_client_options(p)

    p = subparsers.add_parser('send-file', help='Upload a file into a conversation')
    p.add_argument('conv', help='Conversation id')
    p.add_argument('path', help='File to upload')
    p.add_argument('--type', dest='content_type', default=None, help='Content type (default: guessed)')
    _add_client_options(p)

    p = subparsers.add_parser('delete-message', help='Delete one message')
    p.add_argument('conv', help='Conversation id')
    p.add_argument('msg', help='Message id')
    _add_client_options(p)

    p = subparsers.add_parser('delete', help='Delete a conversation')
    p.add_argument('conv', help='Conversation id')
    _add_client_options(p)

    p = subparsers.add_parser('export', help='Export a conversation as plain text')
    p.add_argument('conv', help='Conversation id')
    p.add_argument('--remote', action='store_true', help='Use the backend export (includes sender tag)')
    p.add_argument('-o', '--output', default=None, help='Write to file instead of stdout')
    _add_client_options(p)

    p = subparsers.add_parser('rename', help='Rename a conversation id')
    p.add_argument('old', help='Current conversation id')
    p.add_argument('new', help='New conversation id (alphanumeric)')
    _add_client_options(p)

    p = subparsers.add_parser('theme', help='Show or change the theme')
    p.add_argument('value', nargs='?', choices=['light', 'dark', 'toggle'], default=None)
    _add_client_options(p)

    return parser.parse_args(argv)


def main(argv=None):
    args = parse(argv)
    auto_configure(config.ENV)

    try:
        if args.command == 'server':
            server.server(host=args.host, port=args.port, storage_dir=args.storage)
            return 0
        return client.client(args)
    finally:
        # flush and close log files before exit
        get_logging_manager().shutdown()


if __name__ == '__main__':
    sys.exit(main())
