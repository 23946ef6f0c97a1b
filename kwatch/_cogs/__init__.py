"""
Cogs are the low-level parts of the package: the API transport, the data
structures, the configuration, and the asyncio helpers. They know nothing
about watching sessions or readiness, and are used by the `_core`.
"""
