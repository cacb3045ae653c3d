"""Git operations used during migration."""

from .lfs import LFSHandler, LFSResult

__all__ = ['LFSHandler', 'LFSResult']
