"""CLI presentation helpers."""

from __future__ import annotations

import click

from sfinstaller.domain.models import InstallReport

FAILURE_BANNER = "Installation failed."


class CliPresenter:
    """Render banners, errors and run summaries."""

    def __init__(self, *, quiet: bool) -> None:
        """Store output-mode flags for rendering decisions."""
        self.quiet = quiet

    def emit_intro(self, intro: str) -> None:
        """Emit a styled intro banner unless quiet."""
        if not self.quiet:
            click.echo(click.style(intro, fg="blue"))

    def emit_error(self, message: str) -> None:
        """Emit an error and the failure banner in red on stderr; never suppressed."""
        click.echo(click.style(message, fg="red"), err=True)
        click.echo(click.style(FAILURE_BANNER, fg="red", bold=True), err=True)

    def emit_summary(self, report: InstallReport) -> None:
        """Emit the completed steps and any pending reboot notice."""
        if self.quiet:
            return
        steps = ", ".join(report.completed_steps) or "none"
        click.echo(f"Completed steps: {steps}")
        if report.reboot_required:
            click.echo(click.style("A reboot is required to finish the installation.", fg="yellow"))
