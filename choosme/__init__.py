"""Choose which configured desktop application opens a link, or pick it from a chooser window."""

__version__ = "0.1.0"