"""
End-to-end delegation scenarios

Full chains through the façade: a root registers statements, delegates
accreditation rights, delegates attest rights further down, and entities
validate what they may attest. Revocation is checked to take effect
immediately at every level.

Fun fact: A three-level chain (root -> accreditor -> attester) is the same
shape as a university accrediting a department that certifies graduates!
"""

import pytest

from tests.helpers import NOW_MS, constraint
from trust_hierarchies import Hierarchies
from trust_hierarchies.federation.models import CapabilityKind
from trust_hierarchies.kernel.errors import (
    AccreditationNotFound,
    InsufficientAccreditationToAccredit,
    InsufficientAccreditationToAttest,
    InvalidEntityInsufficientAccreditation,
    InvalidStatement,
)
from trust_hierarchies.statements.models import PatternExpression


def test_attest_and_validate_scenario(hierarchies: Hierarchies, federation: dict) -> None:
    """Root registers org.name=Acme, grants it, the attester validates"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], ["org", "name"], ["Acme"])
    hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "erin", [constraint("org.name", "Acme")]
    )

    hierarchies.validate_statement(fid, "erin", ["org", "name"], "Acme")

    with pytest.raises(InvalidEntityInsufficientAccreditation) as exc_info:
        hierarchies.validate_statement(fid, "erin", ["org", "name"], "Other")
    assert exc_info.value.entity_id == "erin"


def test_revoked_statement_blocks_validation(hierarchies: Hierarchies, federation: dict) -> None:
    """Revoking in the past closes the statement for everybody"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], "org.name", ["Acme"])
    hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "erin", [constraint("org.name", "Acme")]
    )
    hierarchies.validate_statement(fid, "erin", "org.name", "Acme")

    hierarchies.revoke_statement(fid, federation["root"], "org.name", NOW_MS - 1)

    with pytest.raises(InvalidStatement):
        hierarchies.validate_statement(fid, "erin", "org.name", "Acme")


def test_non_root_without_accredit_rights_cannot_accredit(
    hierarchies: Hierarchies, federation: dict
) -> None:
    """An AccreditCap alone is not enough once its backing set is empty"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], "org.name", allow_any=True)
    granted = hierarchies.create_accreditation_to_accredit(
        fid, federation["accredit"], "erin", [constraint("org.name", "Acme")]
    )
    hierarchies.revoke_accreditation_to_accredit(
        fid, federation["accredit"], "erin", granted.accreditation_id
    )
    erin_accredit = hierarchies.capability("erin", fid, CapabilityKind.ACCREDIT)

    with pytest.raises(InsufficientAccreditationToAccredit):
        hierarchies.create_accreditation_to_accredit(
            fid, erin_accredit, "frank", [constraint("org.name", "Acme")]
        )

    assert hierarchies.get_federation(fid).accredit_set("frank") is None


def test_three_level_delegation_chain(hierarchies: Hierarchies, federation: dict) -> None:
    """Root -> accreditor -> attester, each step narrowing the grant"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], "org.name", allow_any=True)

    # Root lets bob accredit others for two names and bob attest them too
    hierarchies.create_accreditation_to_accredit(
        fid, federation["accredit"], "bob", [constraint("org.name", "Acme", "Globex")]
    )
    hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "bob", [constraint("org.name", "Acme", "Globex")]
    )
    bob_accredit = hierarchies.capability("bob", fid, CapabilityKind.ACCREDIT)
    bob_attest = hierarchies.capability("bob", fid, CapabilityKind.ATTEST)

    # bob passes on accredit rights for one name to carol
    hierarchies.create_accreditation_to_accredit(
        fid, bob_accredit, "carol", [constraint("org.name", "Acme")]
    )
    # ...but cannot pass on more than he holds
    with pytest.raises(InsufficientAccreditationToAccredit):
        hierarchies.create_accreditation_to_accredit(
            fid, bob_accredit, "carol", [constraint("org.name", "Initech")]
        )

    # bob grants attest rights, bounded by what he may accredit
    hierarchies.create_accreditation_to_attest(
        fid, bob_attest, "dave", [constraint("org.name", "Globex")]
    )
    with pytest.raises(InsufficientAccreditationToAttest):
        hierarchies.create_accreditation_to_attest(
            fid, bob_attest, "dave", [constraint("org.name", allow_any=True)]
        )

    hierarchies.validate_statement(fid, "dave", "org.name", "Globex")
    with pytest.raises(InvalidEntityInsufficientAccreditation):
        hierarchies.validate_statement(fid, "dave", "org.name", "Acme")

    # carol holds accredit rights only, so she cannot attest
    with pytest.raises(InvalidEntityInsufficientAccreditation):
        hierarchies.validate_statement(fid, "carol", "org.name", "Acme")


def test_root_is_exempt_with_empty_sets(hierarchies: Hierarchies, federation: dict) -> None:
    """alice never granted herself anything, yet may grant anything registered"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], "age", expression=PatternExpression.greater_than(0))

    assert hierarchies.get_accreditations_to_accredit(fid, "alice").is_empty()
    hierarchies.create_accreditation_to_accredit(
        fid, federation["accredit"], "bob", [constraint("age", allow_any=True)]
    )


def test_revocation_is_final(hierarchies: Hierarchies, federation: dict) -> None:
    """A revoked accreditation is gone, and so is what only it allowed"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], "org.name", allow_any=True)
    keep = hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "erin", [constraint("org.name", "Acme")]
    )
    drop = hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "erin", [constraint("org.name", "Globex")]
    )

    hierarchies.revoke_accreditation_to_attest(
        fid, federation["attest"], "erin", drop.accreditation_id
    )

    held = hierarchies.get_accreditations_to_attest(fid, "erin")
    assert held.find_by_id(drop.accreditation_id) is None
    assert held.find_by_id(keep.accreditation_id) is not None
    with pytest.raises(InvalidEntityInsufficientAccreditation):
        hierarchies.validate_statement(fid, "erin", "org.name", "Globex")
    hierarchies.validate_statement(fid, "erin", "org.name", "Acme")

    with pytest.raises(AccreditationNotFound):
        hierarchies.revoke_accreditation_to_attest(
            fid, federation["attest"], "erin", drop.accreditation_id
        )


def test_non_root_revoke_needs_compliance(hierarchies: Hierarchies, federation: dict) -> None:
    """bob may only revoke grants he could have made himself"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], "org.name", allow_any=True)
    hierarchies.create_accreditation_to_accredit(
        fid, federation["accredit"], "bob", [constraint("org.name", "Acme")]
    )
    hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "bob", [constraint("org.name", "Acme")]
    )
    bob_attest = hierarchies.capability("bob", fid, CapabilityKind.ATTEST)
    by_bob = hierarchies.create_accreditation_to_attest(
        fid, bob_attest, "dave", [constraint("org.name", "Acme")]
    )
    by_alice = hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "dave", [constraint("org.name", "Globex")]
    )

    with pytest.raises(InsufficientAccreditationToAttest):
        hierarchies.revoke_accreditation_to_attest(fid, bob_attest, "dave", by_alice.accreditation_id)

    hierarchies.revoke_accreditation_to_attest(fid, bob_attest, "dave", by_bob.accreditation_id)
    assert len(hierarchies.get_accreditations_to_attest(fid, "dave")) == 1


def test_failed_operations_leave_log_untouched(hierarchies: Hierarchies, federation: dict) -> None:
    fid = federation["id"]
    before = hierarchies.stats()

    with pytest.raises(InvalidStatement):
        hierarchies.create_accreditation_to_attest(
            fid, federation["attest"], "erin", [constraint("org.name", "Acme")]
        )
    with pytest.raises(InvalidStatement):
        hierarchies.revoke_statement(fid, federation["root"], "org.name")

    assert hierarchies.stats() == before
    assert hierarchies.event_store.get_stream_version(fid) == hierarchies.get_federation(fid).version


def test_attest_rights_do_not_extend_the_chain(
    hierarchies: Hierarchies, federation: dict
) -> None:
    """dave may attest Acme but may not make anyone else an attester"""
    fid = federation["id"]
    hierarchies.add_statement(fid, federation["root"], "org.name", ["Acme"])
    hierarchies.create_accreditation_to_attest(
        fid, federation["attest"], "dave", [constraint("org.name", "Acme")]
    )
    dave_attest = hierarchies.capability("dave", fid, CapabilityKind.ATTEST)
    before = hierarchies.stats()

    with pytest.raises(InsufficientAccreditationToAttest):
        hierarchies.create_accreditation_to_attest(
            fid, dave_attest, "eve", [constraint("org.name", "Acme")]
        )

    assert hierarchies.stats() == before
    assert not hierarchies.is_attester(fid, "eve")
