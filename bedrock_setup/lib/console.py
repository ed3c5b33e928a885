"""Colored console output utilities using Rich."""

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route diagnostic logging through Rich; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s - %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def print_step(step: str, message: str) -> None:
    """Print a step indicator: [1/5] Installing..."""
    console.print(f"\n[blue][{step}][/blue] {message}")


def print_success(message: str) -> None:
    """Print success message with green checkmark."""
    console.print(f"   [green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print warning message with yellow indicator."""
    console.print(f"   [yellow]![/yellow] {message}")


def print_error(message: str) -> None:
    """Print error message with red X."""
    console.print(f"   [red]✗[/red] {message}")


def print_header(title: str, emoji: str = "🚀") -> None:
    """Print setup header."""
    console.print(f"[blue]{emoji} {title}[/blue]")
    console.print("=" * 40)


def print_plan() -> None:
    """Print what the setup is about to do."""
    console.print("[yellow]This setup will:[/yellow]")
    console.print("   1. Validate AWS Bedrock credentials")
    console.print("   2. Install Claude Code CLI (via npm, installing nvm + Node.js if needed)")
    console.print("   3. Install MCP servers (optional): Playwright, Serena")
    console.print("   4. Configure your shell to export the Bedrock environment")
    console.print("   5. Install the VS Code extension (if the code CLI is available)")
    console.print()


def print_config(
    env_file: str,
    region: str,
    masked_token: str,
    shell: str | None = None,
    operating_system: str | None = None,
) -> None:
    """Print configuration summary."""
    console.print("[blue]📋 Configuration:[/blue]")
    console.print(f"   Env file: {env_file}")
    console.print(f"   Region:   {region}")
    console.print(f"   Token:    {masked_token}")
    if operating_system:
        console.print(f"   OS:       {operating_system}")
    if shell:
        console.print(f"   Shell:    {shell}")


def print_block(text: str) -> None:
    """Print literal shell lines for the user to paste."""
    console.print()
    for line in text.splitlines():
        console.print(f"      {line}", markup=False, highlight=False, soft_wrap=True)
    console.print()


def print_final_success(message: str = "Setup successful!") -> None:
    """Print final success message."""
    console.print()
    console.print(f"[green]✅ {message}[/green]")


def print_next_steps(reload_command: str | None = None) -> None:
    """Print next steps after setup."""
    console.print()
    console.print("Next steps:")
    if reload_command:
        console.print(f"   Reload: {reload_command}  (or restart your terminal)")
    console.print("   Start:  claude")
    console.print("   Docs:   https://docs.anthropic.com/claude/docs/claude-code")
    console.print(
        "   VS Code: https://marketplace.visualstudio.com/items?itemName=Anthropic.claude-code"
    )
