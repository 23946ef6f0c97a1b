"""
Detecting the package's own version from the installed distribution.

The version is determined only once at startup when the code is loaded.
"""
from typing import Optional

version: Optional[str] = None

try:
    import importlib.metadata
except ImportError:
    pass
else:
    try:
        name, *_ = __name__.split('.')  # usually "kwatch", unless renamed/forked.
        version = importlib.metadata.version(name)
    except importlib.metadata.PackageNotFoundError:
        pass  # not installed, e.g. run from a source checkout.
