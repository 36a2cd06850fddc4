from __future__ import annotations

from lms.models.principal import AUTHORING_ROLES, Principal


def test_has_role() -> None:
    p = Principal(user_id="u", roles=frozenset({"learner"}))
    assert p.has_role("learner")
    assert not p.has_role("admin")


def test_has_any_role_for_authoring() -> None:
    instructor = Principal(user_id="u", roles=frozenset({"instructor"}))
    learner = Principal(user_id="u", roles=frozenset({"learner"}))
    assert instructor.has_any_role(AUTHORING_ROLES)
    assert not learner.has_any_role(AUTHORING_ROLES)
