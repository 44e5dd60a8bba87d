"""Output writers."""

from swagdoc.emit.writer import merge_chunks, write_outputs

__all__ = ["merge_chunks", "write_outputs"]
