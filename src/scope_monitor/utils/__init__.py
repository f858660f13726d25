"""Utility modules for Scope Monitor."""

from .images import decode_data_url, encode_data_url, load_image

__all__ = ['decode_data_url', 'encode_data_url', 'load_image']
