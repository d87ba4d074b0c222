"""
Contact form leads and newsletter subscriptions.
"""
