"""
Image input handling: normalization to the service envelope and request part encoding.
"""

from .normalizer import DecodeError, ImageAsset, ImageInput, normalize, normalize_async, load_asset
from .parts import InlineImage, Text, RequestPart, RetryPlan, to_inline_part, parse_data_url

__all__ = [
    'DecodeError',
    'ImageAsset',
    'ImageInput',
    'normalize',
    'normalize_async',
    'load_asset',
    'InlineImage',
    'Text',
    'RequestPart',
    'RetryPlan',
    'to_inline_part',
    'parse_data_url',
]
