"""notedrive: self-hosted file and note sync server."""

__version__ = "0.1.0"
