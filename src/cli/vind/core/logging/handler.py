"""vind logger handler."""

import logging
import sys


class VindLoggerHandler(logging.StreamHandler):
    """Primary user-facing log handler for vind.

    Logs always go to stderr so that command output on stdout (status
    tables, JSON, inventories) stays machine readable.
    """

    @property
    def stream(self):
        """Always return current sys.stderr instead of cached reference.

        This ensures the handler writes to whatever stderr currently points to,
        including CliRunner's capture buffer during tests.
        """
        return sys.stderr

    @stream.setter
    def stream(self, value):
        """Ignore attempts to set stream - always use current sys.stderr."""
        pass
