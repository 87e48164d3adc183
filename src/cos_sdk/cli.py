"""
Command-line interface for COS Python SDK
Provides presigned URLs, request authorization values and temporary credentials
"""

import argparse
import sys
import json
from typing import Dict, List, Optional

from .version import __version__
from .config import CosConfig, LoggingConfig, configure_logging, load_config
from .exceptions import CosSDKError, ValidationError
from .http_client import CosClient
from .signing.assembler import AuthorizationAssembler
from .signing.types import EndpointClass, SignableRequest
from .sts_client import Policy, StsClient

POLICY_BUILDERS = {
    'read': Policy.allow_get_object,
    'write': Policy.allow_put_object,
    'read-write': Policy.allow_read_write,
    'delete': Policy.allow_delete_object,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog='cos-sign',
        description='Sign object storage requests and issue temporary credentials'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'COS Python SDK {__version__}'
    )

    parser.add_argument(
        '--config',
        help='JSON configuration file (default: COS_* environment variables)'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log signing details to stderr'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    setup_presign_parser(subparsers)
    setup_authorization_parser(subparsers)
    setup_sts_parser(subparsers)

    return parser


def setup_presign_parser(subparsers):
    """Setup presigned URL subcommand."""
    presign_parser = subparsers.add_parser('presign', help='Generate a presigned object URL')
    presign_parser.add_argument('--key', required=True, help='Object key')
    presign_parser.add_argument('--method', default='GET', help='HTTP method the URL is valid for (default: GET)')
    presign_parser.add_argument('--expires', type=int, default=3600, help='Validity in seconds (default: 3600)')
    presign_parser.add_argument('--param', action='append', default=[], help='Extra query parameter key=value')


def setup_authorization_parser(subparsers):
    """Setup authorization header subcommand."""
    auth_parser = subparsers.add_parser('authorization', help='Compute the Authorization header for a request')
    auth_parser.add_argument('--method', required=True, help='HTTP method')
    auth_parser.add_argument('--path', required=True, help='Request path, e.g. /photos/cat.jpg')
    auth_parser.add_argument('--header', action='append', default=[], help='Request header name:value')
    auth_parser.add_argument('--param', action='append', default=[], help='Query parameter key=value')
    auth_parser.add_argument('--show-canonical', action='store_true', help='Also print the canonical request and string to sign')


def setup_sts_parser(subparsers):
    """Setup temporary credentials subcommand."""
    sts_parser = subparsers.add_parser('sts', help='Request temporary credentials')
    sts_parser.add_argument('--allow', choices=sorted(POLICY_BUILDERS), required=True, help='Permissions to grant')
    sts_parser.add_argument('--prefix', help='Key prefix the credentials are limited to')
    sts_parser.add_argument('--duration', type=int, default=1800, help='Lifetime in seconds (default: 1800)')
    sts_parser.add_argument('--name', default='temp-user', help='Session name')


def _parse_pairs(values: List[str], separator: str, what: str) -> Dict[str, str]:
    pairs = {}
    for value in values:
        name, sep, item = value.partition(separator)
        if not sep or not name.strip():
            raise ValidationError(
                f"Invalid {what} '{value}', expected name{separator}value",
                "INVALID_ARGUMENT"
            )
        pairs[name.strip()] = item.strip()
    return pairs


def handle_presign_command(args, config: CosConfig) -> int:
    """Handle presigned URL command."""
    if args.expires <= 0:
        print("Error: --expires must be positive", file=sys.stderr)
        return 1

    params = _parse_pairs(args.param, '=', 'parameter')
    with CosClient(config) as client:
        url = client.presigned_url(args.method, args.key, expires=args.expires, params=params)
    print(url)
    return 0


def handle_authorization_command(args, config: CosConfig) -> int:
    """Handle authorization header command."""
    headers = _parse_pairs(args.header, ':', 'header')
    params = _parse_pairs(args.param, '=', 'parameter')
    path = args.path if args.path.startswith('/') else '/' + args.path

    request = SignableRequest(
        method=args.method,
        url=f"{config.bucket_url()}{path}",
        headers=headers,
        params=params
    )
    assembler = AuthorizationAssembler(config.signing)
    signed = assembler.sign(request, config.credentials(), endpoint_class=EndpointClass.DATA_PLANE)

    for name, value in signed.headers.items():
        print(f"{name}: {value}")

    if args.show_canonical:
        print()
        print("# Canonical request")
        print(signed.canonical_request)
        print("# String to sign")
        print(signed.string_to_sign)

    return 0


def handle_sts_command(args, config: CosConfig) -> int:
    """Handle temporary credentials command."""
    policy = POLICY_BUILDERS[args.allow](config.bucket, args.prefix)

    with StsClient.from_config(config) as client:
        credentials = client.get_federation_token(policy, duration_seconds=args.duration, name=args.name)

    output = {
        'TmpSecretId': credentials.tmp_secret_id,
        'TmpSecretKey': credentials.tmp_secret_key,
        'Token': credentials.token,
        'ExpiredTime': credentials.expired_time,
        'Expiration': credentials.expiration,
    }
    print(json.dumps(output, indent=2))
    return 0


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI

    Args:
        argv: Command line arguments (None to use sys.argv)

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
        configure_logging(LoggingConfig('DEBUG') if args.verbose else config.logging)

        if args.command == 'presign':
            return handle_presign_command(args, config)
        elif args.command == 'authorization':
            return handle_authorization_command(args, config)
        else:
            return handle_sts_command(args, config)

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
    except CosSDKError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
