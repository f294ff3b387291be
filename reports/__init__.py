"""
HTML rendering for Meetup archives.

Turns an archive JSON file into a single self-contained HTML page
(inline styles, embedded images, sanitized Markdown descriptions).
"""

__version__ = "0.1.0"
