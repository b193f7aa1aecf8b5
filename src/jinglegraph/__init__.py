"""
Jingle catalog graph integrity.

Relationship direction audit and repair, redundant property
synchronization and APPEARS_IN ordering for the catalog graph.
"""

__version__ = "0.1.0"
