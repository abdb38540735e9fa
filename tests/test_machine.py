"""Tests for the authentication state machine transitions."""

import pytest

from clearauth.client.machine import AuthStateMachine
from clearauth.client.session import Failure, Success
from clearauth.config import AuthConfig
from clearauth.crypto.primitives import text_id
from clearauth.crypto.signer import recover_digest_signer, recover_typed_data_signer
from clearauth.crypto.typed_data import POLICY_TYPES, build_domain, build_policy
from clearauth.protocol.codec import decode_envelope, encode_request
from clearauth.protocol.constants import FailureKind, ZERO_ADDRESS
from clearauth.protocol.errors import HandshakeInProgressError, SigningError
from clearauth.protocol.events import Closed, Errored, FrameReceived, Opened
from clearauth.protocol.models import AuthRequest, VerifyRequest
from clearauth.protocol.phases import Phase

from conftest import FIXED_NOW, TEST_PRIVATE_KEY, TEST_WALLET, FakeConnection, res_frame


def challenge_frame(challenge="5f1c6d2e-challenge"):
    return FrameReceived(res_frame("auth_challenge", {"challenge_message": challenge}))


def verify_frame(success=True, token="tok123"):
    params = {"success": success}
    if token is not None:
        params["jwtToken"] = token
    return FrameReceived(res_frame("auth_verify", params))


class BrokenSigner:
    address = TEST_WALLET

    def sign_digest(self, digest):
        raise SigningError("key unavailable")

    def sign_typed_data(self, domain, types, message, primary_type="Policy"):
        raise SigningError("key unavailable")


@pytest.fixture
def machine(config, signer, connection, clock):
    return AuthStateMachine(config, signer, connection, clock=clock)


async def drive_to_verify_sent(machine):
    await machine.handle(Opened())
    await machine.handle(challenge_frame())
    assert machine.phase is Phase.VERIFY_SENT


class TestHandshakeScenario:
    """End-to-end walk through the happy path."""

    @pytest.mark.asyncio
    async def test_opened_sends_signed_auth_request(self, machine, connection, signer):
        await machine.handle(Opened())

        assert machine.phase is Phase.REQUEST_SENT
        assert len(connection.sent) == 1
        envelope = decode_envelope(connection.sent[0])
        req = envelope.req
        assert isinstance(req, AuthRequest)
        assert req.wallet_address == req.participant_address == TEST_WALLET
        assert req.expire_at == FIXED_NOW + 3600
        assert req.scope == "console"
        assert req.application_address == ZERO_ADDRESS
        assert req.allowances == ()
        assert len(envelope.sig) == 1

        digest = text_id(encode_request(req))
        assert recover_digest_signer(digest, envelope.sig[0]) == signer.address

    @pytest.mark.asyncio
    async def test_challenge_sends_exactly_one_verify(self, machine, connection, signer):
        await machine.handle(Opened())
        await machine.handle(challenge_frame("abc-123"))

        assert machine.phase is Phase.VERIFY_SENT
        assert len(connection.sent) == 2
        envelope = decode_envelope(connection.sent[1])
        assert envelope.req == VerifyRequest(challenge="abc-123")
        assert len(envelope.sig) == 1

        request = machine.pending_request
        domain = build_domain("Yellow Demo App")
        policy = build_policy(request, "abc-123")
        assert recover_typed_data_signer(domain, POLICY_TYPES, policy, envelope.sig[0]) == signer.address

    @pytest.mark.asyncio
    async def test_verify_success_authenticates(self, machine):
        await drive_to_verify_sent(machine)
        await machine.handle(verify_frame(True, "tok123"))

        assert machine.phase is Phase.AUTHENTICATED
        assert isinstance(machine.outcome, Success)
        assert machine.outcome.credential == "tok123"
        session = machine.session
        assert session.credential == "tok123"
        assert session.wallet_address == TEST_WALLET
        assert session.authenticated is True
        assert session.expires_at == FIXED_NOW + 3600
        assert "tok123" not in repr(session)

    @pytest.mark.asyncio
    async def test_snake_case_token_is_accepted(self, machine):
        await drive_to_verify_sent(machine)
        await machine.handle(FrameReceived(res_frame("auth_verify", [{"success": True, "jwt_token": "t2"}])))

        assert machine.session.credential == "t2"

    @pytest.mark.asyncio
    async def test_participant_override(self, signer, connection, clock):
        participant = "0x" + "b" * 40
        cfg = AuthConfig.build(wallet_address=TEST_WALLET, private_key=TEST_PRIVATE_KEY,
                               participant_address=participant)
        m = AuthStateMachine(cfg, signer, connection, clock=clock)
        await m.handle(Opened())

        req = decode_envelope(connection.sent[0]).req
        assert req.wallet_address == TEST_WALLET
        assert req.participant_address == participant


class TestOrdering:
    """Stray and out-of-order frames never move the machine."""

    @pytest.mark.asyncio
    async def test_challenge_in_idle_is_ignored(self, machine, connection):
        await machine.handle(challenge_frame())

        assert machine.phase is Phase.IDLE
        assert connection.sent == []
        assert machine.state.out_of_order_count == 1

    @pytest.mark.asyncio
    async def test_verify_result_before_challenge_is_ignored(self, machine, connection):
        await machine.handle(Opened())
        await machine.handle(verify_frame(True))

        assert machine.phase is Phase.REQUEST_SENT
        assert machine.outcome is None
        assert len(connection.sent) == 1

    @pytest.mark.asyncio
    async def test_duplicate_challenge_is_ignored(self, machine, connection):
        await drive_to_verify_sent(machine)
        await machine.handle(challenge_frame("again"))

        assert machine.phase is Phase.VERIFY_SENT
        assert len(connection.sent) == 2

    @pytest.mark.asyncio
    async def test_challenge_after_authenticated_is_ignored(self, machine, connection):
        await drive_to_verify_sent(machine)
        await machine.handle(verify_frame(True))
        await machine.handle(challenge_frame())

        assert machine.phase is Phase.AUTHENTICATED
        assert len(connection.sent) == 2

    @pytest.mark.asyncio
    async def test_unrecognized_method_is_ignored(self, machine, connection):
        await machine.handle(Opened())
        await machine.handle(FrameReceived(res_frame("assets", [{"asset": "usdc"}])))

        assert machine.phase is Phase.REQUEST_SENT
        assert machine.state.out_of_order_count == 0

    @pytest.mark.asyncio
    async def test_malformed_frame_is_dropped(self, machine):
        await machine.handle(Opened())
        await machine.handle(FrameReceived("{not json"))

        assert machine.phase is Phase.REQUEST_SENT
        assert machine.state.decode_failures == 1

    @pytest.mark.asyncio
    async def test_second_opened_is_a_precondition_violation(self, machine):
        await machine.handle(Opened())

        with pytest.raises(HandshakeInProgressError):
            await machine.handle(Opened())


class TestFailures:
    """Every fatal category lands in FAILED with a reason."""

    @pytest.mark.asyncio
    async def test_rejection(self, machine):
        await drive_to_verify_sent(machine)
        await machine.handle(verify_frame(False, None))

        assert machine.phase is Phase.FAILED
        assert machine.outcome == Failure(reason="rejected by remote authority", kind=FailureKind.REJECTED)
        assert machine.session is None

    @pytest.mark.asyncio
    async def test_success_without_credential_fails(self, machine):
        await drive_to_verify_sent(machine)
        await machine.handle(verify_frame(True, None))

        assert machine.phase is Phase.FAILED
        assert machine.outcome.kind == FailureKind.PROTOCOL

    @pytest.mark.asyncio
    async def test_error_event_fails_with_message(self, machine):
        await machine.handle(Opened())
        await machine.handle(FrameReceived(res_frame("error", {"error": "invalid signature"})))

        assert machine.phase is Phase.FAILED
        assert machine.outcome == Failure(reason="invalid signature", kind=FailureKind.REMOTE_ERROR)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event", [Closed(1006, "abnormal"), Errored(OSError("reset"))])
    async def test_connection_loss_mid_handshake(self, machine, event):
        await machine.handle(Opened())
        await machine.handle(event)

        assert machine.phase is Phase.FAILED
        assert machine.outcome.reason == "connection closed before handshake completed"
        assert machine.outcome.kind == FailureKind.CONNECTION

    @pytest.mark.asyncio
    async def test_connect_error_while_idle(self, machine):
        await machine.handle(Errored(ConnectionRefusedError()))

        assert machine.phase is Phase.FAILED

    @pytest.mark.asyncio
    async def test_signing_failure_on_request(self, config, connection, clock):
        m = AuthStateMachine(config, BrokenSigner(), connection, clock=clock)
        await m.handle(Opened())

        assert m.phase is Phase.FAILED
        assert m.outcome.kind == FailureKind.SIGNING
        assert "key unavailable" in m.outcome.reason
        assert connection.sent == []

    @pytest.mark.asyncio
    async def test_non_integer_allowance_fails_at_challenge(self, signer, connection, clock):
        cfg = AuthConfig.build(wallet_address=TEST_WALLET, private_key=TEST_PRIVATE_KEY,
                               allowances=[{"asset": "usdc", "amount": "0.5"}])
        m = AuthStateMachine(cfg, signer, connection, clock=clock)
        await m.handle(Opened())
        await m.handle(challenge_frame())

        assert m.phase is Phase.FAILED
        assert m.outcome.kind == FailureKind.SIGNING
        assert len(connection.sent) == 1

    @pytest.mark.asyncio
    async def test_send_failure_fails_handshake(self, config, signer, clock):
        m = AuthStateMachine(config, signer, FakeConnection(fail_send=True), clock=clock)
        await m.handle(Opened())

        assert m.phase is Phase.FAILED
        assert m.outcome.kind == FailureKind.CONNECTION

    @pytest.mark.asyncio
    async def test_terminal_outcome_is_final(self, machine):
        await drive_to_verify_sent(machine)
        await machine.handle(verify_frame(False, None))
        outcome = machine.outcome

        await machine.handle(verify_frame(True, "late"))
        await machine.handle(FrameReceived(res_frame("error", {"error": "late"})))
        await machine.handle(Closed(1000, ""))
        await machine.abort("too late")

        assert machine.outcome is outcome
        assert machine.phase is Phase.FAILED

    @pytest.mark.asyncio
    async def test_close_after_authenticated_keeps_session(self, machine):
        await drive_to_verify_sent(machine)
        await machine.handle(verify_frame(True))
        await machine.handle(Closed(1000, "bye"))

        assert machine.phase is Phase.AUTHENTICATED
        assert machine.session.credential == "tok123"
