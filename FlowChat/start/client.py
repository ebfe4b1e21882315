"""
Client startup module for FlowChat application.
Runs one conversation command against the local mirror and, when
configured, the remote blob store.
"""

import asyncio
import mimetypes
import os

import aiofiles

from FlowChat.api.client import BlobStoreClient, close_session
from FlowChat.config import config
from FlowChat.core.client import ConversationSync, PersistenceService, SessionState
from FlowChat.core.utils.exceptions import FlowChatError

__all__ = ['client']


def client(args) -> int:
    """
    Execute a parsed client command.

    Args:
        args: argparse namespace; ``args.api`` overrides FLOW_WORKER_API and
              ``args.state`` overrides FLOW_STATE_DIR.

    Returns:
        int: process exit code
    """
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("Interrupted.")
        return 130


async def _run(args) -> int:
    session = await SessionState(PersistenceService(args.state)).load()
    api = args.api if args.api is not None else config.WORKER_API
    remote = BlobStoreClient(api) if api else None
    sync = ConversationSync(session, remote)
    try:
        return await _dispatch(sync, args)
    except (FlowChatError, OSError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        await sync.drain()
        if remote is not None:
            await close_session()


def _print_conversations(sync: ConversationSync) -> None:
    mirror = sync.mirror
    mode = "backend" if sync.is_remote else "local"
    print(f"Device: {sync.session.device_name}  ({mode}, theme={sync.session.theme})")
    if not len(mirror):
        print("No conversations yet. Create one with 'create <title>'.")
        return
    for conv in mirror:
        marker = "*" if conv.id == mirror.active_id else " "
        print(f"{marker} {conv.id}  {conv.title}  ({len(conv.messages)} messages)")


def _print_messages(sync: ConversationSync, conv_id: str) -> int:
    conv = sync.mirror.get(conv_id)
    if conv is None:
        print(f"Conversation not found: {conv_id}")
        return 1
    print(f"# {conv.title}")
    for m in conv.messages:
        who = "me" if m.sender == sync.session.device_name else (m.sender or "")
        if m.is_file:
            print(f"[{m.id}] {m.time} {who}: [file] {m.text or m.filename} {m.url or ''}".rstrip())
        else:
            print(f"[{m.id}] {m.time} {who}: {m.text}")
    return 0


async def _dispatch(sync: ConversationSync, args) -> int:
    match args.command:
        case "list":
            _print_conversations(sync)

        case "show":
            return _print_messages(sync, args.conv)

        case "sync":
            if not sync.is_remote:
                print("No backend configured; nothing to sync.")
                return 1
            if await sync.load_catalog():
                print(f"Loaded {len(sync.mirror)} conversations from backend.")
            else:
                print("Backend catalog empty or unreachable; local mirror kept.")

        case "create":
            conv_id = await sync.create_conversation(args.title)
            print(f"Created conversation {conv_id} ({args.title})")

        case "send":
            message = await sync.send_text(args.conv, args.text)
            if message is None:
                print("Nothing to send.")
                return 1
            print(f"Sent {message.id}")

        case "send-file":
            async with aiofiles.open(args.path, "rb") as f:
                data = await f.read()
            name = os.path.basename(args.path)
            content_type = args.content_type or mimetypes.guess_type(name)[0]
            message = await sync.send_file(args.conv, name, data, content_type)
            print(f"Sent {message.id} ({message.filename}, {message.size} bytes)")
            if message.url:
                print(message.url)

        case "delete-message":
            removed = await sync.delete_message(args.conv, args.msg)
            print("Deleted." if removed is not None else "No such message locally.")

        case "delete":
            await sync.delete_conversation(args.conv)
            print(f"Deleted conversation {args.conv}")

        case "rename":
            await sync.rename_conversation(args.old, args.new)
            print(f"Renamed {args.old} -> {args.new}")

        case "export":
            if args.remote:
                text = await sync.download_export(args.conv)
            else:
                text = sync.export_conversation(args.conv)
            if args.output:
                async with aiofiles.open(args.output, "w", encoding="utf-8") as f:
                    await f.write(text)
                print(f"Exported to {args.output}")
            else:
                print(text)

        case "theme":
            if args.value == "toggle":
                theme = await sync.session.toggle_theme()
            elif args.value:
                theme = await sync.session.set_theme(args.value)
            else:
                theme = sync.session.theme
            print(theme)

        case _:
            print(f"Unknown command: {args.command}")
            return 1
    return 0
