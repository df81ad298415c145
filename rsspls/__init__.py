"""Generate RSS feeds from websites that do not publish one."""

__version__ = "0.1.0"
