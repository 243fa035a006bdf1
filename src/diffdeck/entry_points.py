import argparse
import os
import sys

from textual.app import App

from diffdeck.screens.diff_viewer import DiffViewerScreen
from diffdeck.utils.config import ConfigError, RepoConfig
from diffdeck.utils.logger import log


class DiffDeckApp(App):
    BINDINGS = []
    DEFAULT_CSS = """
    App {
        background: $surface-darken-3;
    }

    Screen {
        background: $surface-darken-3;
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, repo_config: RepoConfig):
        """Initialize the diffdeck application.

        Args:
            repo_config: Repository to open and the initial layout
        """
        super().__init__()
        self.theme = 'textual-dark'
        self.repo_config = repo_config

    def on_mount(self):
        """Push the diff viewer to begin the application UI."""
        self.push_screen(DiffViewerScreen(self.repo_config))


def _create_argument_parser():
    """Create and configure the command-line argument parser."""
    parser = argparse.ArgumentParser(description="diffdeck: terminal git diff viewer")
    parser.add_argument('--repo', type=str, help='Path to the git repository (default: current directory)')
    parser.add_argument('--side-by-side', action='store_true', help='Start in side-by-side layout when it fits')
    return parser


def _validate_configuration(repo_config: RepoConfig) -> RepoConfig:
    """Check that the repository path is a directory."""
    path = repo_config.resolved_path()
    if not os.path.isdir(path):
        raise ConfigError(f"Repository path is not a directory: {path}")
    return RepoConfig(repo_path=path, side_by_side=repo_config.side_by_side)


def main():
    """Main entry point for diffdeck."""
    parser = _create_argument_parser()
    args = parser.parse_args()

    try:
        repo_config = _validate_configuration(RepoConfig.from_args(args).merge_with_env())
    except ConfigError as e:
        log(f"Configuration validation failed: {e}")
        sys.stderr.write(f"Configuration Error: {e}\n")
        sys.stderr.write("Use --help for usage information.\n")
        sys.exit(1)

    log(f"[INIT] Opening {repo_config.repo_path}")
    DiffDeckApp(repo_config).run()


if __name__ == "__main__":
    main()
