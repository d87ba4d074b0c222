"""
Orders created from paid checkout sessions, and their downloads.
"""
