"""Shared utilities for the backend."""
from utils.case import dict_keys_to_camel, dict_keys_to_snake, to_camel_key, to_snake_key
from utils.logger import get_logger

__all__ = [
    "to_camel_key",
    "to_snake_key",
    "dict_keys_to_camel",
    "dict_keys_to_snake",
    "get_logger",
]
