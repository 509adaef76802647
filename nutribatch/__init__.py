"""
Nutrition batch engine: resumable, rate-limited enrichment jobs over the
meal and tag collections.
"""
__version__ = "1.0.0"
