"""
TextCast - Audiobookshelf listening client.
"""
__version__ = '0.3.0'
