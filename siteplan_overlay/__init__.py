"""Interactive site plan: stand polygons aligned onto SVG artwork, coloured by live status."""

from siteplan_overlay.version import __version__

__all__ = ["__version__"]
