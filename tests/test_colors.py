from exec_shells import ColorDecoder, ColorPolicy, ExecCommand
from exec_shells.colors import (
    IRC_BOLD,
    IRC_COLOR,
    IRC_RESET,
    VARIANT_COMMAND,
    VARIANT_DISPLAY,
    RichColorTransform,
    ansi_to_irc,
    ansi_to_markup,
    strip_ansi,
)
from exec_shells.record import BufferRoute, DisplayRoute, PipeRoute

RED = "\x1b[31mred\x1b[0m plain"


class _Recorder:
    def __init__(self, result="ok"):
        self.calls = []
        self.result = result

    def transform(self, variant, keep_colors, text):
        self.calls.append((variant, keep_colors, text))
        return self.result


class _Broken:
    def transform(self, variant, keep_colors, text):
        raise RuntimeError("boom")


def _cmd(color, route=None):
    return ExecCommand(number=0, command="ls", color=color, route=route or DisplayRoute())


def test_ansi_policy_returns_text_unchanged():
    decoder = ColorDecoder(_Recorder())
    assert decoder.decode(_cmd(ColorPolicy.ANSI), RED) == RED
    assert decoder.transform.calls == []


def test_none_input_gives_none():
    decoder = ColorDecoder(_Recorder())
    assert decoder.decode(_cmd(ColorPolicy.STRIP), None) is None


def test_variant_selection():
    recorder = _Recorder()
    decoder = ColorDecoder(recorder)
    decoder.decode(_cmd(ColorPolicy.DECODE), "a")
    decoder.decode(_cmd(ColorPolicy.STRIP, BufferRoute()), "b")
    decoder.decode(_cmd(ColorPolicy.DECODE, PipeRoute("echo")), "c")
    assert recorder.calls == [
        (VARIANT_DISPLAY, True, "a"),
        (VARIANT_COMMAND, False, "b"),
        (VARIANT_COMMAND, True, "c"),
    ]


def test_transform_failure_gives_none():
    decoder = ColorDecoder(_Broken())
    assert decoder.decode(_cmd(ColorPolicy.DECODE), RED) is None


def test_strip_removes_escape_sequences():
    assert strip_ansi(RED) == "red plain"
    assert RichColorTransform().transform(VARIANT_COMMAND, False, RED) == "red plain"


def test_decode_for_display_gives_markup():
    markup = ansi_to_markup(RED)
    assert "\x1b" not in markup
    assert "red" in markup
    assert markup.startswith("[")
    assert markup.endswith(" plain")


def test_decode_for_commands_gives_irc_codes():
    assert ansi_to_irc("\x1b[1;31mhi\x1b[0m there") == f"{IRC_BOLD}{IRC_COLOR}05hi{IRC_RESET} there"


def test_decode_bright_color_for_commands():
    assert ansi_to_irc("\x1b[94mblue\x1b[0m") == f"{IRC_COLOR}12blue{IRC_RESET}"


def test_plain_text_untouched_by_irc_decode():
    assert ansi_to_irc("no colors here") == "no colors here"


def test_default_decoder_uses_rich_transform():
    decoder = ColorDecoder()
    assert decoder.decode(_cmd(ColorPolicy.STRIP), RED) == "red plain"


def test_color_policy_search():
    assert ColorPolicy.search("DECODE") is ColorPolicy.DECODE
    assert ColorPolicy.search("nope") is None
    assert ColorPolicy.search(None) is None
