"""Built-in CLI sub-commands for swagdoc.

* :mod:`~swagdoc.commands.init` -- generate the document (``init``, alias
  ``generate``).
* :mod:`~swagdoc.commands.inspect` -- examine paths, schemas, auth, info and
  diagnostics without writing files.
"""
