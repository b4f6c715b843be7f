"""localcert constants."""
import datetime
import logging
import os

CLI_DEFAULTS = dict(
    config_files=[
        "/etc/localcert/cli.ini",
        # http://freedesktop.org/wiki/Software/xdg-user-dirs/
        os.path.join(os.environ.get("XDG_CONFIG_HOME", "~/.config"),
                     "localcert", "cli.ini"),
    ],

    # Main parser
    verbose_count=-int(logging.INFO / 10),
    max_log_backups=100,
    noninteractive_mode=False,
    quiet=False,
    debug=False,
    force_renew=False,
    tos=False,
    strict_permissions=False,

    # Key generation
    key_type="ecdsa",
    elliptic_curve="secp256r1",
    rsa_key_size=2048,

    # Authority
    # directory URL of the localcert authority; no public default exists
    server=None,
    root_domain="localcert.net",
    issuance_timeout=90,

    # Paths
    config_dir=os.path.join(os.environ.get("XDG_CONFIG_HOME", "~/.config"), "localcert"),
    logs_dir=os.path.join(os.environ.get("XDG_STATE_HOME", "~/.local/state"), "localcert"),
    cert_path=None,
    key_path=None,
)
"""Defaults for CLI flags and `.NamespaceConfig` attributes."""

QUIET_LOGGING_LEVEL = logging.WARNING
"""Logging level to use in quiet mode."""

RENEWAL_WINDOW = datetime.timedelta(days=30)
"""Certificates expiring further away than this are not renewed."""

CERTIFICATE_FILENAME = "localcert.crt"
"""Certificate chain file, relative to `config_dir`."""

KEY_FILENAME = "localcert.key"
"""Certificate private key file, relative to `config_dir`."""

ACME_ACCOUNT_FILENAME = "acme_account.json"
"""ACME account record, relative to `config_dir`."""

DOMAIN_FILENAME = "domain.txt"
"""Domain hint file, relative to `config_dir`."""

LOG_FILENAME = "localcert.log"
"""Basename of the rotating debug log."""

CERTIFICATE_PEM_TYPE = "CERTIFICATE"
"""PEM block type used for every entry of the certificate chain."""

CERTIFICATE_FILE_MODE = 0o644
PRIVATE_FILE_MODE = 0o600
CONFIG_DIR_MODE = 0o700
