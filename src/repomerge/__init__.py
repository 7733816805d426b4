"""repomerge: select files from a directory or GitHub repo and merge them into one text."""

__version__ = "0.1.0"
