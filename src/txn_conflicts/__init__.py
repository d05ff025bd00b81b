"""
Manual vs. bank-import transaction conflict detection and resolution.

Scans a transaction snapshot for likely duplicates between manually entered
and bank-imported transactions, in small cooperatively scheduled chunks, and
applies resolution decisions against the transaction REST API.
"""

__version__ = "0.1.0"
