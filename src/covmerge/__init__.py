"""covmerge: merge coverage samples from many commits onto one base commit."""

__version__ = "0.1.0"
