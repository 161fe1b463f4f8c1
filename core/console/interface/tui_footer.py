"""Footer renderer for TaskTreeTUI."""

from prompt_toolkit.formatted_text import FormattedText

from core.console.interface.tui_display import fit_display


def footer_hint_key(tui) -> str:
    if getattr(tui, "detail_mode", False):
        if getattr(tui, "detail_editing", False):
            return "HINT_EDIT"
        return "HINT_DETAIL"
    if getattr(tui, "picker_mode", None):
        return "HINT_PICKER"
    if getattr(tui, "editing_multiline", False):
        return "HINT_EDIT_MULTILINE"
    if getattr(tui, "choosing", False):
        return "HINT_CHOICE"
    if getattr(tui, "editing_mode", False):
        return "HINT_EDIT"
    return "HINT_LIST"


def build_footer_text(tui) -> FormattedText:
    width = max(20, tui.get_terminal_width())
    if getattr(tui, "confirm_mode", False):
        return FormattedText([("class:confirm", fit_display(" " + tui.confirm_message, width))])
    hint = tui._t(footer_hint_key(tui))
    return FormattedText([
        ("class:border", "─" * width + "\n"),
        ("class:text.dim", fit_display(" " + hint, width)),
    ])


__all__ = ["build_footer_text", "footer_hint_key"]
