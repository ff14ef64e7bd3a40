"""Secondary index subsystem.

This package holds index definitions, the write-triggered engine that
maintains aggregate documents, and the deep-merge rules they rely on.
"""
