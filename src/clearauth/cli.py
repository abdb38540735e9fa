# clearauth: wallet challenge-response authentication against a ClearNode
# EIP-191 signed auth_request, EIP-712 signed auth_verify, JWT session credential

from __future__ import annotations

import argparse
import asyncio
import secrets
import sys
from datetime import datetime, timezone

import structlog

from clearauth.util.deps import check_dependencies

EXIT_OK = 0
EXIT_AUTH_FAILED = 1
EXIT_CONFIG = 2

logger = structlog.get_logger("clearauth.cli")


def self_check() -> bool:
    """Sign and recover with a throwaway key; exercise the codec round trip."""
    from clearauth.crypto.primitives import text_id
    from clearauth.crypto.signer import EthAccountSigner, recover_digest_signer, recover_typed_data_signer
    from clearauth.crypto.typed_data import POLICY_TYPES, build_domain, build_policy
    from clearauth.protocol.codec import decode_envelope, encode_envelope, encode_request
    from clearauth.protocol.constants import DEFAULT_DOMAIN_NAME, ZERO_ADDRESS
    from clearauth.protocol.models import AuthRequest, Envelope

    checks = []
    signer = EthAccountSigner("0x" + secrets.token_hex(32))
    request = AuthRequest(
        wallet_address=signer.address, participant_address=signer.address,
        application_name="self-check", expire_at=0, scope="console",
        application_address=ZERO_ADDRESS,
    )

    digest = text_id(encode_request(request))
    sig = signer.sign_digest(digest)
    checks.append(("Digest signature recovers", recover_digest_signer(digest, sig) == signer.address))
    checks.append(("Digest signature deterministic", signer.sign_digest(digest) == sig))

    domain = build_domain(DEFAULT_DOMAIN_NAME)
    policy = build_policy(request, "self-check-challenge")
    typed_sig = signer.sign_typed_data(domain, POLICY_TYPES, policy)
    checks.append(("Typed-data signature recovers",
                   recover_typed_data_signer(domain, POLICY_TYPES, policy, typed_sig) == signer.address))

    envelope = Envelope(req=request, sig=(sig,))
    checks.append(("Envelope round trip", decode_envelope(encode_envelope(envelope)) == envelope))

    all_ok = all(ok for _, ok in checks)
    for name, ok in checks:
        (logger.info if ok else logger.error)("self_check", check=name, status=("OK" if ok else "FAILED"))
    return all_ok


def _load_config(args):
    from clearauth.config import AuthConfig
    overrides = {}
    if getattr(args, "endpoint", None):
        overrides["endpoint"] = args.endpoint
    if getattr(args, "timeout", None):
        overrides["handshake_timeout"] = args.timeout
    return AuthConfig.from_env(**overrides)


def _print_session(session) -> None:
    expires = datetime.fromtimestamp(session.expires_at, tz=timezone.utc).isoformat()
    print("Authenticated")
    print(f"  Wallet:     {session.wallet_address}")
    print(f"  Expires:    {expires}")
    print(f"  Credential: {'present' if session.credential else 'not available'}")


def cmd_auth(args) -> int:
    from clearauth.client.session import Failure
    from clearauth.client.wsclient import AuthClient

    config = _load_config(args)
    client = AuthClient(config)
    logger.info("starting_auth", endpoint=config.endpoint, wallet=config.wallet_address)
    outcome = asyncio.run(client.run())
    if isinstance(outcome, Failure):
        print(f"Authentication failed ({outcome.kind}): {outcome.reason}")
        return EXIT_AUTH_FAILED
    _print_session(outcome.session)
    return EXIT_OK


def cmd_address(args) -> int:
    from clearauth.crypto.signer import EthAccountSigner
    config = _load_config(args)
    print(EthAccountSigner(config.private_key.get_secret_value()).address)
    return EXIT_OK


def cmd_check(args) -> int:
    if not self_check():
        print("Self-check failed")
        return EXIT_AUTH_FAILED
    print("Self-check passed")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clearauth", description="ClearNode wallet authentication")
    parser.add_argument("--log-level", default="info")
    parser.add_argument("--json-logs", action="store_true", help="Render logs as JSON lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    auth_parser = subparsers.add_parser("auth", help="Authenticate and obtain a session credential")
    auth_parser.add_argument("--endpoint", help="Override WS_ENDPOINT")
    auth_parser.add_argument("--timeout", type=float, help="Give up after this many seconds")
    auth_parser.set_defaults(func=cmd_auth)

    address_parser = subparsers.add_parser("address", help="Print the signer address for PRIVATE_KEY")
    address_parser.set_defaults(func=cmd_address)

    check_parser = subparsers.add_parser("check", help="Run signing and codec self-check")
    check_parser.set_defaults(func=cmd_check)
    return parser


def main(argv=None) -> int:
    ok, missing = check_dependencies()
    if not ok:
        print("ERROR: Missing dependencies:")
        for dep in missing:
            print(f"  - {dep}")
        print(f"\nInstall with:\npip install {' '.join(missing)}")
        return EXIT_CONFIG

    from clearauth.protocol.errors import ConfigError, SigningError
    from clearauth.util.log import configure_logging

    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, json=args.json_logs)

    try:
        return args.func(args)
    except ConfigError as e:
        logger.error("config_error", error=str(e))
        print(f"Configuration error: {e}")
        return EXIT_CONFIG
    except SigningError as e:
        logger.error("invalid_private_key", error=str(e))
        print(f"Invalid PRIVATE_KEY: {e}")
        return EXIT_CONFIG
    except KeyboardInterrupt:
        logger.info("client_shutdown", reason="keyboard_interrupt")
        return EXIT_AUTH_FAILED


if __name__ == "__main__":
    sys.exit(main())
