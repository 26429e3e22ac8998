import pytest

import guard
from auth import Identity
from guard import GuardState
from router import resolve
from schemas import ProfileRow
from session_store import UNAUTHENTICATED, Session

from conftest import make_store, register, run


class StubStore:
    def __init__(self, loading=False, session=UNAUTHENTICATED):
        self.loading = loading
        self._session = session

    def get_current_session(self):
        return self._session


def _session(role):
    identity = Identity(id="u1", email="a@example.com")
    return Session(identity, ProfileRow(id="u1", email="a@example.com", full_name="A", role=role))


def test_loading_renders_loading_state():
    decision = guard.evaluate(StubStore(loading=True), "student")
    assert decision.state == GuardState.LOADING
    assert decision.redirect is None
    assert not decision.allowed


@pytest.mark.parametrize("role", [None, "student", "recruiter"])
def test_unauthenticated_always_redirects_to_login(role):
    decision = guard.evaluate(StubStore(), role)
    assert decision.state == GuardState.UNAUTHENTICATED
    assert decision.redirect == "/login"
    assert not decision.allowed


def test_identity_without_profile_redirects_to_login():
    store = StubStore(session=Session(Identity(id="u1", email="a@example.com"), None))
    assert guard.evaluate(store).redirect == "/login"


@pytest.mark.parametrize("profile_role, required", [("recruiter", "student"), ("student", "recruiter")])
def test_role_mismatch_redirects_to_dashboard(profile_role, required):
    decision = guard.evaluate(StubStore(session=_session(profile_role)), required)
    assert decision.state == GuardState.AUTHENTICATED_MISMATCH
    assert decision.redirect == "/dashboard"


def test_role_match_and_no_role_are_allowed():
    store = StubStore(session=_session("student"))
    assert guard.evaluate(store, "student").state == GuardState.AUTHENTICATED_MATCH
    assert guard.evaluate(store).state == GuardState.AUTHENTICATED_NO_ROLE
    assert guard.evaluate(store, "student").allowed


def test_public_routes_are_open():
    decision = guard.check(StubStore(loading=True), resolve("/gallery"))
    assert decision.state == GuardState.OPEN
    assert decision.allowed


def test_guard_reads_latest_session(datastore):
    store = make_store(datastore)
    match = resolve("/portfolio/create")
    assert guard.check(store, match).redirect == "/login"

    store = register(datastore)
    assert guard.check(store, match).allowed

    run(store.sign_out())
    assert guard.check(store, match).redirect == "/login"
