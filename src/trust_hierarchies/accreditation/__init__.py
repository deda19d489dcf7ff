"""
Accreditation Module - delegated rights to attest and to accredit
"""

from trust_hierarchies.accreditation.models import Accreditation, AccreditationSet

__all__ = ["Accreditation", "AccreditationSet"]
