# ABOUTME: The `folio completion` command for shell integration.
# ABOUTME: Prints Click's completion script for bash, zsh or fish.

import click
from click.shell_completion import get_completion_class

PROG_NAME = "folio"
COMPLETE_VAR = "_FOLIO_COMPLETE"
SHELLS = ("bash", "zsh", "fish")


@click.command()
@click.argument("shell", type=click.Choice(SHELLS))
@click.pass_context
def completion(ctx: click.Context, shell: str) -> None:
    """Print the completion script for SHELL.

    For bash, add ``eval "$(folio completion bash)"`` to ~/.bashrc.
    """
    comp_cls = get_completion_class(shell)
    if comp_cls is None:
        raise click.UsageError(f"unsupported shell: {shell}")
    root = ctx.find_root()
    comp = comp_cls(root.command, {}, PROG_NAME, COMPLETE_VAR)
    click.echo(comp.source())
