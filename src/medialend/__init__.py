"""medialend - lending registry for a media library.

Tracks lendable items (books, audio, video), borrowers and their
categories, loan records and overdue escalation.
"""

__version__ = "0.1.0"
