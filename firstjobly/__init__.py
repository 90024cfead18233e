"""firstjobly: job posting ingestion and paginated serving."""

__version__ = "6.0.0"
