"""
Around Service - location-tagged post sharing backend
"""
__version__ = "1.0.0"
