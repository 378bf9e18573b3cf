"""facetransfer — move faces, keywords, stacks and GPS from an Aperture library into a Lightroom catalog."""

__version__ = "0.1.0"
