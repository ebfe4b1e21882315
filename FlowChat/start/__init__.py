"""
Startup entry points for FlowChat: the blob store emulator and the client commands.
"""
