import pytest
from rich.console import Console

from exec_shells import ExecCommand, OutputRouter, SurfaceDirectory
from exec_shells.record import ColorPolicy
from exec_shells.surfaces import ConsoleSurface


@pytest.fixture
def console():
    return Console(record=True, width=200, force_terminal=True, color_system="standard")


@pytest.fixture
def surface(console):
    return ConsoleSurface(console=console)


def _route(surface, text, **options):
    record = ExecCommand(number=0, command="cat", **options)
    record.out.append(text)
    OutputRouter(SurfaceDirectory(surface)).route(record, surface, True)


def test_plain_output_keeps_brackets(surface, console):
    _route(surface, "[bold]hello\n", color=ColorPolicy.ANSI)
    assert "[bold]hello" in console.export_text()


def test_stripped_output_keeps_brackets(surface, console):
    _route(surface, "\x1b[31m[red]\x1b[0m tag\n", color=ColorPolicy.STRIP)
    assert "[red] tag" in console.export_text()


def test_decoded_output_is_styled(surface, console):
    _route(surface, "\x1b[31mred\x1b[0m [x]\n", color=ColorPolicy.DECODE)
    assert "red [x]" in console.export_text(clear=False)
    assert "\x1b[31m" in console.export_text(styles=True)


def test_return_code_line_is_literal(surface, console):
    surface.print_tags(("exec_rc",), 'exec: end of command 0 ("echo [red]x[/red]"), return code: 0')
    assert '("echo [red]x[/red]")' in console.export_text()


def test_invalid_markup_is_printed_as_text(surface, console):
    surface.print_tags(("exec_stdout",), "[/bold] x", markup=True)
    assert "[/bold] x" in console.export_text()


def test_command_without_handler_is_echoed(surface, console):
    surface.command("/msg bob [hi]")
    assert "> /msg bob [hi]" in console.export_text()


def test_command_handler_receives_text(console):
    seen = []
    surface = ConsoleSurface("irc.libera.#test", console=console, command_handler=lambda s, text: seen.append((s.full_name, text)))
    surface.command("hello")
    assert seen == [("irc.libera.#test", "hello")]
    assert console.export_text() == ""
