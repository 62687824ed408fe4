"""
Parley: one chat contract in front of several conversational backends.
"""

__version__ = "0.3.0"
