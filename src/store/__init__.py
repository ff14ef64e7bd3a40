"""Document storage layer.

This package maps keys to JSON files, performs atomic writes, and runs
recursive listing and deletion over the store's directory tree.
"""
