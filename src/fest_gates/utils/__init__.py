"""Shared utility helpers."""

from fest_gates.utils.paths import atomic_temp_path, write_text_atomically

__all__ = [
    "atomic_temp_path",
    "write_text_atomically",
]
