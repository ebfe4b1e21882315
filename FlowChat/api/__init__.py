"""
HTTP side of FlowChat: the blob store emulator (FastAPI) and its aiohttp client.
"""
