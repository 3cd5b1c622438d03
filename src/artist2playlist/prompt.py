"""Line-oriented prompt for the interactive session."""

import click
import typer


class Prompt:
    """Ask the user one question at a time on the terminal.
    
    Empty answers are returned as "" instead of re-asking, so callers decide
    what a blank line means. End of input is reported as EOFError.
    """

    def __init__(self) -> None:
        self.closed = False

    def ask(self, question: str) -> str:
        if self.closed:
            raise EOFError("prompt is closed")
        try:
            return typer.prompt(
                question,
                default="",
                show_default=False,
                prompt_suffix=" ",
            )
        except click.exceptions.Abort as e:
            self.closed = True
            raise EOFError("input closed") from e

    def close(self) -> None:
        self.closed = True
