"""Client-side processing queue for construction-site photo classification."""

__version__ = "0.1.0"
