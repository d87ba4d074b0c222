"""
Financial model product catalog.
"""
