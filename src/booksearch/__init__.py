"""booksearch - inverted-index search engine for public-domain books."""

__version__ = "0.1.0"
