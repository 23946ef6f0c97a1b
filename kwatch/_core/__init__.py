"""
The core of the watching engine: sessions, existence tracking, reconnection,
callback dispatching, and readiness waiting. All of it is implemented once,
and is parametrised by the API capabilities (see `kwatch._cogs.clients`).
"""
