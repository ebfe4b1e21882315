"""
Core package for FlowChat: message codec, storage, client-side sync and logging.
"""
