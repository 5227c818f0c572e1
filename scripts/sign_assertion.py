"""
CLI utility to sign an ActionKit assertion for a user.

Handy for poking the ActionKit API directly while debugging the gateway:
it signs the same RS256 assertion the gateway would sign for the user and
prints a ready-to-use curl command for the action catalog.

The signing key and project id come from the usual PARAGON_* environment
variables (or .env), unless overridden on the command line.

Usage examples:

    # Assertion for a user, key from PARAGON_SIGNING_KEY
    python -m scripts.sign_assertion --user alice@company.com

    # Key from a PEM file, catalog filtered to Slack
    python -m scripts.sign_assertion --user alice@company.com \\
        --key-file private.pem --integrations slack
"""

import argparse
import datetime
from pathlib import Path

from actionkit_mcp.auth import TokenSigner
from actionkit_mcp.config import load_settings
from actionkit_mcp.errors import ConfigurationError


def main() -> None:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        raise SystemExit(e.message)

    parser = argparse.ArgumentParser(
        description="Sign an ActionKit user assertion with the gateway's key.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--user",
        required=True,
        help="Identity to sign for (the Paragon user id, usually an email)",
    )
    parser.add_argument(
        "--key-file",
        type=Path,
        help="PEM private key file (default: PARAGON_SIGNING_KEY)",
    )
    parser.add_argument(
        "--project-id",
        default=settings.project_id,
        help="ActionKit project id used in the printed curl command (default: PARAGON_PROJECT_ID)",
    )
    parser.add_argument(
        "--integrations",
        nargs="+",
        default=settings.integrations,
        help="Integrations to filter the printed catalog request by",
    )

    args = parser.parse_args()

    key = args.key_file.read_text(encoding="utf-8") if args.key_file else settings.signing_key
    try:
        assertion = TokenSigner(key).sign(args.user)
    except ConfigurationError as e:
        parser.error(e.message)

    def fmt(ts: int) -> str:
        return datetime.datetime.fromtimestamp(ts, tz=datetime.timezone.utc).isoformat()

    print(f"Subject:    {assertion.subject}")
    print(f"Issued:     {fmt(assertion.issued_at)}")
    print(f"Expires:    {fmt(assertion.expires_at)}")
    print()
    print(f"Token: {assertion.token}")

    query = f"?integrations={','.join(args.integrations)}" if args.integrations else ""
    print()
    print("Usage with curl (list the user's actions):")
    print(f'  curl "{settings.api_base_url}/projects/{args.project_id}/actions{query}" \\')
    print(f'    -H "Authorization: {assertion.authorization_header}"')


if __name__ == "__main__":
    main()
