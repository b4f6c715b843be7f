"""localcert command line argument parsing"""
import argparse
from typing import Any
from typing import Optional

import configargparse

import localcert
from localcert import configuration
from localcert._internal import constants

SHORT_USAGE = """
  localcert [options]

Obtain a certificate for the domain assigned to this machine's ACME account,
or renew it once it is within 30 days of expiring.
"""


def flag_default(name: str) -> Any:
    """Default value for CLI flag."""
    return constants.CLI_DEFAULTS[name]


def prepare_and_parse_args(args: list[str]) -> configuration.NamespaceConfig:
    """Returns parsed command line arguments.

    :param list args: command line arguments with the program name removed

    :returns: parsed command line arguments
    :rtype: configuration.NamespaceConfig

    """
    parser = build_parser()
    namespace = parser.parse_args(args)
    return configuration.NamespaceConfig(namespace)


def build_parser(config_files: Optional[list[str]] = None) -> configargparse.ArgParser:
    """Create the localcert argument parser.

    :param list config_files: config files read before the command line,
        defaults to ``CLI_DEFAULTS["config_files"]``

    """
    if config_files is None:
        config_files = flag_default("config_files")
    parser = configargparse.ArgParser(
        prog="localcert",
        usage=SHORT_USAGE,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        args_for_setting_config_path=["-c", "--config"],
        default_config_files=config_files,
        config_arg_help_message="path to config file (default: {0})".format(
            " and ".join(config_files)))

    parser.add_argument(
        "--version", action="version", version="%(prog)s {0}".format(localcert.__version__))
    parser.add_argument(
        "--force-renew", "--forceRenew", action="store_true", dest="force_renew",
        default=flag_default("force_renew"),
        help="force renewal of a certificate with more than 30 days until expiration")

    registration = parser.add_argument_group("registration")
    registration.add_argument(
        "--server", default=flag_default("server"),
        help="ACME directory URL of the localcert authority (required).")
    registration.add_argument(
        "--root-domain", default=flag_default("root_domain"),
        help="Parent domain of the subdomains assigned by the localcert server.")
    registration.add_argument(
        "--agree-tos", dest="tos", action="store_true", default=flag_default("tos"),
        help="Agree to the ACME server's Terms of Service without prompting.")
    registration.add_argument(
        "--issuance-timeout", type=int, default=flag_default("issuance_timeout"),
        metavar="SECONDS",
        help="How long to wait for the ACME server to issue the certificate.")

    keys = parser.add_argument_group("keys")
    keys.add_argument(
        "--key-type", choices=["rsa", "ecdsa"], default=flag_default("key_type"),
        help="Type of generated certificate private key.")
    keys.add_argument(
        "--elliptic-curve", default=flag_default("elliptic_curve"),
        choices=["secp256r1", "secp384r1", "secp521r1"],
        help="Curve of generated ECDSA certificate private keys.")
    keys.add_argument(
        "--rsa-key-size", type=int, default=flag_default("rsa_key_size"), metavar="N",
        help="Size of generated RSA keys, including the ACME account key.")

    paths = parser.add_argument_group("paths")
    paths.add_argument(
        "--config-dir", default=flag_default("config_dir"),
        help="Directory holding the certificate, its key and the ACME account.")
    paths.add_argument(
        "--logs-dir", default=flag_default("logs_dir"), help="Logs directory.")
    paths.add_argument(
        "--cert-path", default=flag_default("cert_path"),
        help="Write the certificate chain here instead of the config directory.")
    paths.add_argument(
        "--key-path", default=flag_default("key_path"),
        help="Use the certificate private key at this path.")
    paths.add_argument(
        "--strict-permissions", action="store_true",
        default=flag_default("strict_permissions"),
        help="Require that the config directory is owned by the current user "
             "with 0700 permissions.")

    output = parser.add_argument_group("output")
    output.add_argument(
        "-n", "--non-interactive", "--noninteractive", dest="noninteractive_mode",
        action="store_true", default=flag_default("noninteractive_mode"),
        help="Run without ever asking for user input.")
    output.add_argument(
        "-v", "--verbose", dest="verbose_count", action="count",
        default=flag_default("verbose_count"),
        help="This flag can be used multiple times to incrementally increase the "
             "verbosity of output, e.g. -vvv.")
    output.add_argument(
        "-q", "--quiet", dest="quiet", action="store_true", default=flag_default("quiet"),
        help="Silence all output except errors.")
    output.add_argument(
        "--debug", action="store_true", default=flag_default("debug"),
        help="Show tracebacks in case of errors.")
    output.add_argument(
        "--max-log-backups", type=nonnegative_int, default=flag_default("max_log_backups"),
        help="Specifies the maximum number of backup logs that should be kept. "
             "Setting this to 0 disables log rotation.")

    return parser


def nonnegative_int(value: str) -> int:
    """Converts value to an int and checks that it is not negative.

    This function should used as the type parameter for argparse
    arguments.

    :param str value: value provided on the command line

    :returns: integer representation of value
    :rtype: int

    :raises argparse.ArgumentTypeError: if value isn't a non-negative integer

    """
    try:
        int_value = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("value must be an integer")

    if int_value < 0:
        raise argparse.ArgumentTypeError("value must be non-negative")
    return int_value
