# leadscout/__init__.py
"""
LeadScout: packaging-buyer discovery.

Intent -> search queries -> provider results -> seeds -> crawl tasks ->
fetched pages -> extracted signals -> scored, tiered leads. A periodic
per-org sweep keeps discovery and refresh work flowing into a task queue.
"""

__version__ = "0.1.0"
