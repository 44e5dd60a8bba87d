"""Document assembly and version-aware rendering."""

from swagdoc.document.assembler import assemble
from swagdoc.document.render import render_document

__all__ = ["assemble", "render_document"]
