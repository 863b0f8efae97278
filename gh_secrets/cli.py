"""
gh-secrets command line

Manage GitHub Actions repository secrets from a terminal.

Authentication uses, in order: --token, $GITHUB_TOKEN / $GH_TOKEN, or the OAuth
device flow (forced with --device-flow). Nothing is written to disk; every
invocation authenticates again.

Examples:
    gh-secrets whoami
    gh-secrets repos --org my-org
    gh-secrets secrets list octocat/hello-world
    echo -n s3cret | gh-secrets secrets set octocat/hello-world API_KEY --value-stdin
    gh-secrets secrets upload octocat/hello-world --env-file .env
"""
import argparse
import asyncio
import getpass
import os
import sys
import webbrowser

from loguru import logger

from .config import load_settings
from .credentials import CredentialAcquisition
from .envfile import read_env_file
from .errors import GhSecretsError
from .log import configure_logging
from .names import partition
from .protocol import DeviceAuthorization
from .session import SecretsSession

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def parse_repo(value: str) -> tuple[str, str]:
    """argparse type for OWNER/REPO arguments."""
    owner, sep, repo = value.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise argparse.ArgumentTypeError(f"expected OWNER/REPO, got '{value}'")
    return owner, repo


def resolve_token(args: argparse.Namespace) -> str | None:
    """Pick the static token to use, or None for the device flow."""
    if args.device_flow:
        return None
    if args.token:
        return args.token
    for name in TOKEN_ENV_VARS:
        if os.environ.get(name):
            return os.environ[name]
    return None


def show_device_code(authorization: DeviceAuthorization, open_browser: bool = True) -> None:
    print("\nTo authorize gh-secrets:", file=sys.stderr)
    print(f"  1. Visit: {authorization.verification_uri}", file=sys.stderr)
    print(f"  2. Enter code: {authorization.user_code}\n", file=sys.stderr)
    if open_browser:
        try:
            webbrowser.open(authorization.verification_uri)
        except webbrowser.Error as e:
            logger.debug(f"Could not open a browser: {e}")
    print("Waiting for authorization in browser...", file=sys.stderr)


async def acquire_session(args: argparse.Namespace) -> SecretsSession:
    settings = load_settings(args.config)
    acquisition = CredentialAcquisition(settings)

    token = resolve_token(args)
    if token:
        return await acquisition.with_token(token)

    scopes = settings.org_scopes if args.org_scopes else settings.scopes
    logger.info(f"Requesting scopes: {', '.join(scopes)}")
    return await acquisition.with_device_flow(
        on_code=lambda auth: show_device_code(auth, open_browser=not args.no_browser),
        client_id=args.client_id,
        scopes=scopes,
    )


async def cmd_whoami(session: SecretsSession, args: argparse.Namespace) -> int:
    identity = session.identity
    print(f"{identity.login}" + (f" ({identity.name})" if identity.name else ""))
    return 0


async def cmd_orgs(session: SecretsSession, args: argparse.Namespace) -> int:
    orgs = await session.list_organizations()
    if not orgs:
        print("No organizations found.")
    for org in orgs:
        print(f"{org.login}" + (f" - {org.description}" if org.description else ""))
    return 0


async def cmd_repos(session: SecretsSession, args: argparse.Namespace) -> int:
    repos = await session.list_repositories(org=args.org)
    if not repos:
        print("No repositories found.")
    for repo in repos:
        print(f"{repo.full_name} ({'private' if repo.private else 'public'})")
    return 0


async def cmd_secrets_list(session: SecretsSession, args: argparse.Namespace) -> int:
    owner, repo = args.repo
    secrets = await session.list_secrets(owner, repo)
    if not secrets:
        print(f"No secrets found in {owner}/{repo}.")
        return 0
    print(f"Found {len(secrets)} secret(s) in {owner}/{repo}:")
    for secret in secrets:
        print(f"  {secret.name}" + (f" (updated: {secret.updated_at})" if secret.updated_at else ""))
    return 0


async def cmd_secrets_set(session: SecretsSession, args: argparse.Namespace) -> int:
    owner, repo = args.repo
    if args.value_stdin:
        value = sys.stdin.read().rstrip("\n")
    else:
        value = getpass.getpass("Secret value: ")
    await session.set_secret(owner, repo, args.name, value)
    print(f"Secret {args.name} created/updated in {owner}/{repo}")
    return 0


async def cmd_secrets_upload(session: SecretsSession, args: argparse.Namespace) -> int:
    owner, repo = args.repo
    secrets = read_env_file(args.env_file)
    if not secrets:
        print(f"No secrets found in {args.env_file}.")
        return 1

    valid, invalid = partition(secrets)
    if invalid:
        print("Invalid secret names (will be skipped):")
        for name in invalid:
            print(f"  {name}")
    if not valid:
        print("No valid secrets to upload.")
        return 1
    if args.dry_run:
        print(f"Would upload {len(valid)} secret(s) to {owner}/{repo}:")
        for name in valid:
            print(f"  {name}")
        return 0

    report = await session.upload_secrets(owner, repo, valid)
    if report.uploaded:
        print(f"Uploaded {len(report.uploaded)} secret(s):")
        for name in report.uploaded:
            print(f"  {name}")
    if report.failed:
        print(f"Failed to upload {len(report.failed)} secret(s):")
        for name, error in report.failed:
            print(f"  {name}: {error}")
        return 1
    return 0


async def cmd_secrets_delete(session: SecretsSession, args: argparse.Namespace) -> int:
    owner, repo = args.repo
    await session.delete_secret(owner, repo, args.name)
    print(f"Secret {args.name} deleted from {owner}/{repo}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gh-secrets",
        description="Manage GitHub Actions repository secrets",
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument(
        "--token",
        default=None,
        help="GitHub token (defaults to $GITHUB_TOKEN or $GH_TOKEN)",
    )
    parser.add_argument(
        "--device-flow",
        action="store_true",
        help="Authenticate in the browser with the OAuth device flow",
    )
    parser.add_argument("--client-id", default=None, help="OAuth App client ID for the device flow")
    parser.add_argument(
        "--org-scopes",
        action="store_true",
        help="Request organization scopes (admin:org, write:org) in the device flow",
    )
    parser.add_argument("--no-browser", action="store_true", help="Do not open a browser")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    whoami = commands.add_parser("whoami", help="Show the authenticated user")
    whoami.set_defaults(handler=cmd_whoami)

    orgs = commands.add_parser("orgs", help="List your organizations")
    orgs.set_defaults(handler=cmd_orgs)

    repos = commands.add_parser("repos", help="List repositories")
    repos.add_argument("--org", default=None, help="List an organization's repositories")
    repos.set_defaults(handler=cmd_repos)

    secrets = commands.add_parser("secrets", help="Manage repository secrets")
    secret_commands = secrets.add_subparsers(dest="secrets_command", required=True)

    list_cmd = secret_commands.add_parser("list", help="List secret names")
    list_cmd.add_argument("repo", type=parse_repo, metavar="OWNER/REPO")
    list_cmd.set_defaults(handler=cmd_secrets_list)

    set_cmd = secret_commands.add_parser("set", help="Create or update a secret")
    set_cmd.add_argument("repo", type=parse_repo, metavar="OWNER/REPO")
    set_cmd.add_argument("name")
    set_cmd.add_argument(
        "--value-stdin",
        action="store_true",
        help="Read the value from stdin instead of prompting",
    )
    set_cmd.set_defaults(handler=cmd_secrets_set)

    upload_cmd = secret_commands.add_parser("upload", help="Upload secrets from a .env file")
    upload_cmd.add_argument("repo", type=parse_repo, metavar="OWNER/REPO")
    upload_cmd.add_argument("--env-file", default=".env", help="Path to the .env file")
    upload_cmd.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be uploaded without authenticating",
    )
    upload_cmd.set_defaults(handler=cmd_secrets_upload)

    delete_cmd = secret_commands.add_parser("delete", help="Delete a secret")
    delete_cmd.add_argument("repo", type=parse_repo, metavar="OWNER/REPO")
    delete_cmd.add_argument("name")
    delete_cmd.set_defaults(handler=cmd_secrets_delete)

    return parser


async def run(args: argparse.Namespace) -> int:
    if getattr(args, "dry_run", False):
        return await args.handler(None, args)
    async with await acquire_session(args) as session:
        return await args.handler(session, args)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except GhSecretsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
