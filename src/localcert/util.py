"""Utilities for all localcert."""
import errno
import logging
import os
import stat
import tempfile
from typing import NamedTuple
from typing import Optional

from localcert import errors

logger = logging.getLogger(__name__)

ANSI_SGR_RED = "\033[31m"
ANSI_SGR_RESET = "\033[0m"

PERM_ERR_FMT = os.linesep.join((
    "The following error was encountered:", "{0}",
    "Either run as root, or set --config-dir and --logs-dir to writeable paths."))


class Key(NamedTuple):
    """Container for an optional file path and contents for a PEM-formated private key."""
    file: Optional[str]
    pem: bytes


def make_or_verify_dir(directory: str, mode: int = 0o755, strict: bool = False) -> None:
    """Make sure directory exists with proper permissions.

    :param str directory: Path to a directory.
    :param int mode: Directory mode.
    :param bool strict: require directory to be owned by current user

    :raises .errors.Error: if a directory already exists,
        but has wrong permissions or owner

    :raises OSError: if invalid or inaccessible file names and
        paths, or other arguments that have the correct type,
        but are not accepted by the operating system.

    """
    try:
        os.makedirs(directory, mode)
    except OSError as exception:
        if exception.errno == errno.EEXIST:
            if strict and not check_permissions(directory, mode):
                raise errors.Error(
                    "%s exists, but it should be owned by current user with"
                    " permissions %s" % (directory, oct(mode)))
        else:
            raise


def check_permissions(path: str, mode: int) -> bool:
    """Check file or directory permissions.

    :param str path: Path to file or directory
    :param int mode: Octal file mode

    :returns: True if the mode matches and the current user owns the path
    :rtype: bool

    """
    status = os.stat(path)
    return stat.S_IMODE(status.st_mode) == mode and status.st_uid == os.getuid()


def atomic_write(path: str, data: bytes, chmod: int = 0o644) -> None:
    """Replace the contents of path with data in a single rename.

    The data is written to a temporary file next to `path` which is then
    moved over the destination, so readers see either the old or the new
    contents, never a partial write.

    :param str path: Destination file.
    :param bytes data: Complete new contents.
    :param int chmod: Mode of the new file.

    :raises OSError: if the file cannot be written or moved into place

    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as temp_file:
            temp_file.write(data)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.chmod(temp_path, chmod)
        os.replace(temp_path, path)
    except BaseException:
        safely_remove(temp_path)
        raise


def safely_remove(path: str) -> None:
    """Remove a file that may not exist."""
    try:
        os.remove(path)
    except OSError as err:
        if err.errno != errno.ENOENT:
            raise

