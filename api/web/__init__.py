"""
Human-facing HTML pages.
"""
