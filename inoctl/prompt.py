"""Interactive selection from a list of labels."""

from __future__ import annotations

import click

from inoctl.errors import EmptyResultError


def choose(prompt: str, labels: list[str]) -> str:
    """Show a numbered menu and return the chosen label.

    The answer may be typed as the label itself or as its number. A menu
    number that is also the text of some label is not offered as a number,
    so typing it always means that label.
    """
    if not labels:
        raise EmptyResultError("Nothing to choose from")

    click.echo()
    for i, label in enumerate(labels, 1):
        click.echo(f"  {i}. {label}")
    click.echo()

    numbers = {str(i): label for i, label in enumerate(labels, 1) if str(i) not in labels}
    answer = click.prompt(prompt, type=click.Choice(labels + list(numbers)), show_choices=False)
    return answer if answer in labels else numbers[answer]
