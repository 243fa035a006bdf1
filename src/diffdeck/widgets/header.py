from textual.widgets import Header as TextualHeader


class Header(TextualHeader):
    """Application header carrying the page name in the title."""

    DEFAULT_CSS = """
    Header {
        dock: top;
        background: $panel-darken-2;
        padding: 0 1;
        text-style: bold;
        content-align: center middle;
        height: 1;
    }
    """

    def __init__(self, page_name: str = "", show_clock: bool = False):
        super().__init__(show_clock=show_clock)
        self.title = f"diffdeck | {page_name}" if page_name else "diffdeck"
