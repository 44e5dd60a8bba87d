"""Directive grammars and the interpreter that turns directives into fragments."""

from swagdoc.directives.interpreter import GeneralInfoAccumulator, interpret_operation

__all__ = ["GeneralInfoAccumulator", "interpret_operation"]
