"""Base screen class shared by diffdeck screens.

Every screen follows the same composition: Header + main content + Footer.
"""

from textual.app import ComposeResult
from textual.screen import Screen

from diffdeck.utils.logger import log
from diffdeck.widgets.footer import Footer
from diffdeck.widgets.header import Header


class BaseScreen(Screen):
    """Base class for diffdeck screens.

    Subclasses implement compose_main_content() and get_footer_text(); this
    class wraps them with the standard header and footer.
    """

    def __init__(self, page_name: str):
        """Initialize base screen with page name.

        Args:
            page_name: Name to display in header and title
        """
        super().__init__()
        self.page_name = page_name
        self.title = f"diffdeck | {page_name}"

    def compose(self) -> ComposeResult:
        """Standard composition: header + main content + footer."""
        yield Header(page_name=self.page_name, show_clock=False)

        yield from self.compose_main_content()

        yield Footer(text=self.get_footer_text())

    def compose_main_content(self) -> ComposeResult:
        """Define the main content area for this screen."""
        raise NotImplementedError("Subclasses must implement compose_main_content()")

    def get_footer_text(self) -> str:
        """Get footer text for this screen."""
        raise NotImplementedError("Subclasses must implement get_footer_text()")

    def action_go_back(self):
        """Standard back navigation action; the last screen exits the app."""
        try:
            if len(self.app.screen_stack) > 1:
                self.app.pop_screen()
            else:
                self.app.exit()
        except (AttributeError, RuntimeError) as e:
            log(f"Failed to go back: {e}")

    async def on_mount(self):
        """Standard mounting behavior - set screen title and claim the terminal for logging."""
        log.bind_app(self.app)
        self.title = f"diffdeck | {self.page_name}"
