"""
Meetup group archiver.

Fetches every PAST and UPCOMING event of a group from the Meetup GraphQL API,
inlines event photos as data URIs and writes a single JSON archive.
"""

__version__ = "0.1.0"
