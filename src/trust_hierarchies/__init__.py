"""
Trust Hierarchies - Event-sourced accreditation registry

Root authorities register the statements a federation recognises, then
delegate the right to attest them (and the right to delegate further)
down a chain of accredited entities. Every delegation is checked so that
nobody can pass on more authority than they hold.

Fun fact: The chain-of-trust idea predates computers by centuries - royal
seals were honoured because the king vouched for the chancellor who
vouched for the clerk!
"""

from trust_hierarchies.hierarchies import Hierarchies

__version__ = "0.1.0"
__all__ = ["Hierarchies", "__version__"]
