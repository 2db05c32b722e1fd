"""
Quick Logcat Symbolizer (QLS).

Follows an Android app's logcat output and symbolizes native crash frames
through a persistent addr2line process.
"""

__version__ = "0.3.0"
