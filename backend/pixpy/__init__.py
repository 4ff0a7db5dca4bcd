"""
pixpy - image editing backend core.

Prepares user images for the Gemini image editing model, builds requests,
interprets responses and retries refused prompts once with a fallback.
"""

__version__ = "0.1.0"
