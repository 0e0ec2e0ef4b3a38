"""prcov: pull-request coverage gate."""

__version__ = "0.1.0"
