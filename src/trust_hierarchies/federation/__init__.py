"""
Federation Module - trust domains, capabilities and delegation rules

This module implements the accreditation engine:
- Federations with root authorities (exempt from compliance checks)
- Governance: statement registry plus attest and accredit maps
- Capability tokens bound to a single federation
- Compliance-gated grant and revoke of accreditations

Fun fact: A federation's root authorities play the part of a PKI's root
CAs - everything else in the domain is trusted only through them!
"""

from trust_hierarchies.federation.models import (
    Capability,
    CapabilityKind,
    Federation,
    Governance,
    RootAuthority,
)

__all__ = [
    "Capability",
    "CapabilityKind",
    "Federation",
    "Governance",
    "RootAuthority",
]
