"""News reader: resolve aggregator links and extract readable articles."""

__version__ = "0.1.0"
