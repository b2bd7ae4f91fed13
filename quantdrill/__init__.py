"""
quantdrill - adaptive arithmetic practice from the terminal.

Picks the next drill problem from a learner's SM-2 memory state and
in-session history, and updates that state after every answer.
"""

__version__ = "1.0.0"
