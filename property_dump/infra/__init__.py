"""Infra layer utilities."""

from .url_list import iter_urls, load_urls, slice_urls

__all__ = ["iter_urls", "load_urls", "slice_urls"]
