r"""
    ________                ________          __
   / ____/ /___ _      __  / ____/ /_  ____ _/ /_
  / /_  / / __ \ | /| / / / /   / __ \/ __ `/ __/
 / __/ / / /_/ / |/ |/ / / /___/ / / / /_/ / /_
/_/   /_/\____/|__/|__/  \____/_/ /_/\__,_/\__/

FlowChat Project - conversations and file drops over a tiny blob store.

A local mirror of conversations kept in step, best-effort, with a remote
key-value store reachable through a small HTTP shim.
"""

__version__ = "1.0.0"
