import logging

import click

from sfinstaller import __version__ as about
from sfinstaller.application.workflows import execute_install
from sfinstaller.cli.config import setup_logging
from sfinstaller.cli.exit_codes import INTERNAL_BUG, exit_code_for
from sfinstaller.cli.presenter import CliPresenter
from sfinstaller.constants import VERSION_LABEL_CHOICES
from sfinstaller.domain.models import InstallRequest

# Get a logger for this module.
log = logging.getLogger(__name__)

# Define an epilog message with examples.
EPILOG = f"""
Supported versions: {", ".join(VERSION_LABEL_CHOICES)}

Examples:

{click.style('• install the SDK next to Visual Studio 2015', fg="green")}

    $ sfinstaller "Visual Studio 2015"

{click.style('• install the SDK and add Service Fabric Tools to every Visual Studio 2017 instance', fg="green")}

    $ sfinstaller "Visual Studio 2017" --verbose
"""


@click.command(
    help=about.__description__,
    epilog=EPILOG,
)
@click.version_option(
    about.__version__,
    prog_name=about.__title__,
    message="%(prog)s, version %(version)s\nCheck {url} for more info".format(url=about.__url__),
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging",
)
@click.option(
    "--quiet", "-q",
    is_flag=True,
    default=False,
    help="Only log warnings and errors",
)
# Labels are validated by the installer so the Local AppData restore covers bad input too.
@click.argument("version_label", metavar="VERSION", envvar="SFINSTALLER_VS_VERSION")
@click.pass_context
def main(ctx: click.Context, version_label: str, verbose: bool, quiet: bool):
    """
    Main entry point for the installer CLI.

    Configures logging, runs the installation for the requested Visual Studio
    version and maps the outcome onto the process exit code.

    Parameters:
        ctx (click.Context): Click context.
        version_label (str): Visual Studio label such as "Visual Studio 2017".
        verbose (bool): Flag enabling DEBUG logging.
        quiet (bool): Flag limiting logging to WARNING and suppressing the intro.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    setup_logging(level=level)

    presenter = CliPresenter(quiet=quiet)
    presenter.emit_intro(about.__intro__)
    log.info(f"Started installation for {version_label}")

    try:
        report = execute_install(InstallRequest(version_label=version_label))
    except Exception as exc:
        log.exception("Installation crashed")
        presenter.emit_error(f"Installation failed unexpectedly: {exc}")
        ctx.exit(INTERNAL_BUG)

    if report.error is not None:
        presenter.emit_error(str(report.error))
        ctx.exit(exit_code_for(report.error))

    presenter.emit_summary(report)
    log.info("SUCCESS")


if __name__ == "__main__":
    main(prog_name=about.__title__)
