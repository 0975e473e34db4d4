"""A small content distribution network: meta/origin server, CDN cache nodes, file store and syncing client."""

__version__ = "0.1.0"