"""
stemfetch: submit audio to a remote separation server and collect the stems.
"""

__version__ = "0.1.0"
