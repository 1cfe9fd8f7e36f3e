"""
Storefront backend access layer.
"""
