"""Tests for the credential × model attempt loop."""

import pytest

from conftest import FakeAPIError, FakeProvider
from keyrouter.dispatcher import AttemptCursor, GenerationDispatcher, decide
from keyrouter.errors import AggregateFailure, CredentialRevealError, NoCredentialsAvailable
from keyrouter.models import (
    Decision,
    EphemeralCredential,
    GenerationRequest,
    Outcome,
    OutcomeKind,
    PersonalCredential,
)
from keyrouter.recorder import OutcomeRecorder


class RecordingWriter:
    """In-memory stand-in for the store's update method."""

    def __init__(self):
        self.updates = []

    def update_credential(self, credential_id, update):
        self.updates.append((credential_id, update))
        return True


def personal(id, secret):
    return PersonalCredential(id=id, name=f"k{id}", revealer=lambda: secret)


def make_dispatcher(provider, writer=None):
    return GenerationDispatcher(provider, OutcomeRecorder(writer or RecordingWriter()))


QUOTA = FakeAPIError(429, "RESOURCE_EXHAUSTED: quota exceeded")
INVALID = FakeAPIError(401, "API key not valid")


def test_decisions_per_outcome():
    assert decide(Outcome.success("ok")) is Decision.SUCCEED
    assert decide(Outcome.failure(OutcomeKind.TRANSIENT, "q")) is Decision.CONTINUE
    assert decide(Outcome.failure(OutcomeKind.UNKNOWN, "?")) is Decision.CONTINUE
    assert decide(Outcome.failure(OutcomeKind.PERMANENT, "bad")) is Decision.NEXT_CREDENTIAL


def test_cursor_walks_models_then_credentials():
    a, b = personal(1, "a"), personal(2, "b")
    cursor = AttemptCursor([a, b], ["m1", "m2"])

    assert cursor.current() == (a, "m1")
    assert cursor.advance(Decision.CONTINUE) is Decision.CONTINUE
    assert cursor.current() == (a, "m2")
    cursor.advance(Decision.CONTINUE)
    assert cursor.current() == (b, "m1")
    assert cursor.advance(Decision.NEXT_CREDENTIAL) is Decision.EXHAUST_ALL
    assert cursor.current() is None


def test_empty_credentials_fail_without_provider_calls():
    provider = FakeProvider(default="never")

    with pytest.raises(NoCredentialsAvailable):
        make_dispatcher(provider).dispatch(GenerationRequest("hi", ["m1"]), [])

    assert provider.calls == []


def test_first_success_short_circuits():
    provider = FakeProvider({("a", "m1"): QUOTA, ("a", "m2"): "hello"}, default="should not be reached")
    credentials = [personal(1, "a"), personal(2, "b")]

    text = make_dispatcher(provider).dispatch(GenerationRequest("hi", ["m1", "m2", "m3"]), credentials)

    assert text == "hello"
    assert provider.calls == [("a", "m1"), ("a", "m2")]


def test_permanent_failure_skips_remaining_models():
    provider = FakeProvider({("a", "m1"): INVALID, ("b", "m1"): "from b"})
    writer = RecordingWriter()

    text = make_dispatcher(provider, writer).dispatch(
        GenerationRequest("hi", ["m1", "m2"]), [personal(1, "a"), personal(2, "b")]
    )

    assert text == "from b"
    assert provider.calls == [("a", "m1"), ("b", "m1")]
    revoked = [u for cid, u in writer.updates if cid == 1][0]
    assert revoked.status.value == "revoked"
    assert revoked.enabled is False


def test_exhaustion_carries_last_error():
    provider = FakeProvider({("a", "m1"): QUOTA, ("a", "m2"): Exception("model overloaded")})

    with pytest.raises(AggregateFailure) as exc:
        make_dispatcher(provider).dispatch(GenerationRequest("hi", ["m1", "m2"]), [personal(1, "a")])

    assert exc.value.last_error == "model overloaded"
    assert exc.value.attempts == 2
    assert "model overloaded" in str(exc.value)


def test_unrevealable_secret_skips_credential():
    def broken():
        raise CredentialRevealError("Stored API key could not be decrypted")

    bad = PersonalCredential(id=1, name="bad", revealer=broken)
    provider = FakeProvider({("b", "m1"): "ok"})
    writer = RecordingWriter()

    text = make_dispatcher(provider, writer).dispatch(GenerationRequest("hi", ["m1"]), [bad, personal(2, "b")])

    assert text == "ok"
    assert provider.calls == [("b", "m1")]
    assert [cid for cid, _ in writer.updates] == [2]


def test_ephemeral_outcomes_are_never_recorded():
    provider = FakeProvider({("fallback", "m1"): INVALID, ("fallback", "m2"): "ok"})
    writer = RecordingWriter()

    with pytest.raises(AggregateFailure):
        make_dispatcher(provider, writer).dispatch(
            GenerationRequest("hi", ["m1", "m2"]), [EphemeralCredential("fallback")]
        )

    # Permanent still skips the ephemeral key's other models, but writes nothing
    assert provider.calls == [("fallback", "m1")]
    assert writer.updates == []


def test_recorder_failure_does_not_abort_success():
    class FailingWriter:
        def update_credential(self, credential_id, update):
            raise RuntimeError("disk full")

    provider = FakeProvider({("a", "m1"): "still works"})

    text = make_dispatcher(provider, FailingWriter()).dispatch(GenerationRequest("hi", ["m1"]), [personal(1, "a")])

    assert text == "still works"


def test_attempt_start_time_is_recorded():
    provider = FakeProvider({("a", "m1"): QUOTA, ("a", "m2"): "ok"})
    writer = RecordingWriter()

    make_dispatcher(provider, writer).dispatch(GenerationRequest("hi", ["m1", "m2"]), [personal(1, "a")])

    first, second = [u for _, u in writer.updates]
    assert first.last_used_at is not None
    assert first.increment_usage is False
    assert second.increment_usage is True
    assert second.last_used_at >= first.last_used_at


def test_scenario_d_unknown_errors_exhaust_every_pair():
    provider = FakeProvider()  # every call fails with "unexpected failure #n"
    writer = RecordingWriter()
    credentials = [personal(1, "a"), personal(2, "b")]

    with pytest.raises(AggregateFailure) as exc:
        make_dispatcher(provider, writer).dispatch(GenerationRequest("hi", ["m1", "m2", "m3"]), credentials)

    assert len(provider.calls) == 6
    assert exc.value.last_error == "unexpected failure #6"
    assert all(u.status is None and u.enabled is None for _, u in writer.updates)
