"""Use cases orchestrating install server and external collaborators."""

from .bulk_install import BulkInstall

__all__ = ["BulkInstall"]
