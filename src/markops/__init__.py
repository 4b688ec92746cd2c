"""markops: marketing-operations workspace: ordered boards, campaign tags, docs and search."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("markops")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from markops.core import Item, MarkopsDB, Tag

__all__ = ["Item", "MarkopsDB", "Tag", "__version__"]
