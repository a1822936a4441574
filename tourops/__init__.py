"""Tour operations core: boat assignments, pricing, settlement and daily manifests."""

__version__ = "1.0.0"
