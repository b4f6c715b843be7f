"""localcert main entry point."""
import contextlib
import logging
import os
import sys
from typing import Generator
from typing import IO
from typing import Optional
from typing import Union

import localcert
from localcert import configuration
from localcert import errors
from localcert._internal import cli
from localcert._internal import client
from localcert._internal import log
from localcert._internal import provision
from localcert._internal.display import obj as display_obj

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def make_displayer(config: configuration.NamespaceConfig
                   ) -> Generator[Union[display_obj.NoninteractiveDisplay,
                                        display_obj.FileDisplay], None, None]:
    """Creates a display object appropriate to the flags in the supplied config.

    :param config: Configuration object

    :returns: Display object

    """
    displayer: Union[None, display_obj.NoninteractiveDisplay,
                     display_obj.FileDisplay] = None
    devnull: Optional[IO] = None

    if config.quiet:
        config.noninteractive_mode = True
        devnull = open(os.devnull, "w")  # pylint: disable=consider-using-with
        displayer = display_obj.NoninteractiveDisplay(devnull)
    elif config.noninteractive_mode:
        displayer = display_obj.NoninteractiveDisplay(sys.stdout)
    else:
        displayer = display_obj.FileDisplay(sys.stdout)

    try:
        yield displayer
    finally:
        if devnull:
            devnull.close()


def run(config: configuration.NamespaceConfig) -> provision.ProvisionResult:
    """Provision or renew the certificate described by config.

    :param config: Configuration object

    :returns: outcome of the run
    :rtype: `.provision.ProvisionResult`

    """
    acme_client = client.AcmeClient(config)
    result = provision.provision(config, acme_client,
                                 force_renew=config.force_renew,
                                 agree_tos=config.tos)
    logger.debug("Run finished: %s", result.outcome)
    return result


def main(cli_args: Optional[list[str]] = None) -> Optional[Union[str, int]]:
    """Run localcert.

    :param cli_args: command line to localcert, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: value for `sys.exit` about the exit status of localcert
    :rtype: `str` or `int` or `None`

    """
    if cli_args is None:
        cli_args = sys.argv[1:]

    console = log.start_console()

    # note: arg parser internally handles --help (and exits afterwards)
    config = cli.prepare_and_parse_args(cli_args)

    log.finish_setup(config, console)
    logger.debug("localcert version: %s", localcert.__version__)
    logger.debug("Location of localcert entry point: %s", sys.argv[0])
    logger.debug("Arguments: %r", cli_args)

    with make_displayer(config) as displayer:
        display_obj.set_display(displayer)

        try:
            run(config)
        except errors.Error as error:
            logger.debug("Exiting with error:", exc_info=True)
            return str(error)
    return None
