"""orderbridge - delivery platform order ingestion"""

__version__ = "1.0.0"
