"""
Path Versions - count distinct content versions of every path in git history.

Walks the commit graph reachable from HEAD once, diffs each commit against
its parents and accumulates the set of blob ids each path (following
renames) has ever held.
"""

__version__ = "1.0.0"
