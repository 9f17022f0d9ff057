"""Posts and comments written by logged-in users.

Posts and their comments live in their own DuckDB database, separate from
the blob store. Every route requires a logged-in session; the author of a
post or comment is taken from that session.
"""
