"""Descriptor models and loader exports."""

from .loader import (
    DescriptorDocument,
    DescriptorParseError,
    find_descriptor,
    load_descriptor,
    parse_descriptor,
    write_default_descriptor,
)
from .models import DEFAULT_DESCRIPTOR, Descriptor, Fragment

__all__ = [
    "DEFAULT_DESCRIPTOR",
    "Descriptor",
    "DescriptorDocument",
    "DescriptorParseError",
    "Fragment",
    "find_descriptor",
    "load_descriptor",
    "parse_descriptor",
    "write_default_descriptor",
]
