"""Development tools: fish shell, packages, mise, Starship, SDKMAN."""

import logging
from pathlib import Path

from archpi.context import Context
from archpi.errors import StepSkipped
from archpi.settings import read_config
from archpi.utils import Policy, command_exists

logger = logging.getLogger("ArchPI")

SDKMAN_INSTALLER = "https://get.sdkman.io"

FISH_SDKMAN = """set -x SDKMAN_DIR "$HOME/.sdkman"
if test -s "$HOME/.sdkman/bin/sdkman-init.sh"
  bass source "$HOME/.sdkman/bin/sdkman-init.sh"
end"""

BASH_SDKMAN = '''export SDKMAN_DIR="$HOME/.sdkman"
[[ -s "$HOME/.sdkman/bin/sdkman-init.sh" ]] && source "$HOME/.sdkman/bin/sdkman-init.sh"'''


def fish_config(ctx: Context) -> Path:
    return ctx.settings.user_config_dir / "fish" / "config.fish"


def add_shell_hooks(ctx: Context, marker: str, bash_line: str, fish_line: str):
    if ctx.files.append_once(ctx.settings.bashrc, marker, bash_line, sudo=False):
        logger.info(f"Added {marker} hook to .bashrc")
    if ctx.files.append_once(fish_config(ctx), marker, fish_line, sudo=False):
        logger.info(f"Added {marker} hook to fish config")


def setup_terminal(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("development", "terminal"), "pacman", policy=Policy.SKIP)
    ctx.runner.run(
        ["chsh", "-s", "/usr/bin/fish", ctx.user], "Setting fish as default shell", sudo=True,
        policy=Policy.PROCEED,
    )


def setup_development_tools(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("development", "tools"), "pacman")
    setup_mise(ctx)
    setup_starship(ctx)
    setup_sdkman(ctx)
    ctx.console.print("[green]Development tools setup completed![/green]")


def setup_mise(ctx: Context):
    config = ctx.settings.user_config_dir / "mise" / "config.toml"
    if not config.exists():
        ctx.files.write(config, read_config("mise-config.toml"), sudo=False)
        logger.info("mise configuration file created")

    add_shell_hooks(ctx, "mise activate", 'eval "$(mise activate bash)"', "mise activate fish | source")
    ctx.runner.run(["mise", "--version"], "Verifying mise installation", policy=Policy.PROCEED)


def setup_starship(ctx: Context):
    add_shell_hooks(ctx, "starship init", 'eval "$(starship init bash)"', "starship init fish | source")

    config = ctx.settings.user_config_dir / "starship.toml"
    if not config.exists():
        ctx.files.write(config, read_config("starship.toml"), sudo=False)
        logger.info("Starship configuration file created")


def setup_sdkman(ctx: Context):
    if not command_exists("javac"):
        raise StepSkipped("JDK not found. Skipping SDKMAN setup. Install a JDK first.")

    if not (Path.home() / ".sdkman").is_dir():
        ctx.runner.run(
            ["bash", "-c", f"curl -s '{SDKMAN_INSTALLER}' | bash"], "Downloading and installing SDKMAN",
            policy=Policy.SKIP, quiet=False,
        )
    add_shell_hooks(ctx, "sdkman-init.sh", BASH_SDKMAN, FISH_SDKMAN)
