"""
Discussion board engagement and retrieval engine
"""
__version__ = "1.0.0"
