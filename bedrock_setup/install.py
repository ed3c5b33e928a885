"""Install and configure Claude Code with AWS Bedrock."""

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from .lib.bedrock import CredentialValidationError, credential_hints, require_valid_credentials
from .lib.commands import (
    CommandError,
    check_command_exists,
    install_claude_cli,
    install_mcp_servers,
    install_vscode_extension,
    mcp_manual_commands,
    vscode_extension_installed,
)
from .lib.config import (
    REGION_VAR,
    SAMPLE_ENV,
    TOKEN_VAR,
    USE_BEDROCK_VAR,
    ConfigurationError,
    SetupConfig,
    export_to_process,
    get_setup_config,
    mask_secret,
)
from .lib.console import (
    configure_logging,
    console,
    print_block,
    print_config,
    print_error,
    print_final_success,
    print_header,
    print_next_steps,
    print_plan,
    print_step,
    print_success,
    print_warning,
)
from .lib.gitignore import GitignoreOutcome, ensure_gitignored
from .lib.shell_profile import (
    ConfigBlock,
    OperatingSystem,
    Outcome,
    PrependPath,
    RawInit,
    SetEnv,
    ShellKind,
    ShellProfileError,
    UnsupportedShellError,
    append_config_block,
    ensure_login_chain,
    render_block,
    resolve_profile_path,
)

app = typer.Typer(help="Install and configure Claude Code with AWS Bedrock")

MARKER = USE_BEDROCK_VAR
BLOCK_TITLE = "Claude Code Bedrock configuration"
MCP_DEFAULT = True


@dataclass
class SetupSummary:
    """What each step achieved, for the final report."""

    claude_version: str | None = None
    mcp_servers: list[str] = field(default_factory=list)
    shell_status: str = "not configured"
    reload_command: str | None = None
    vscode_extension: bool = False

    @property
    def shell_configured(self) -> bool:
        return self.shell_status in ("configured", "already configured")


def build_config_block(config: SetupConfig, home: Path | None = None) -> ConfigBlock:
    """Directives that make new shells use Claude Code through Bedrock."""
    home = home or Path.home()
    block = ConfigBlock(BLOCK_TITLE)
    block.add(SetEnv(USE_BEDROCK_VAR, config.use_bedrock))
    block.add(SetEnv(REGION_VAR, config.region))
    block.add(SetEnv(TOKEN_VAR, config.bearer_token))

    if (home / ".nvm").is_dir():
        block.add(RawInit("nvm"), comment="nvm (Node Version Manager) initialization")

    local_bin = home / ".local" / "bin"
    if (local_bin / "uvx").is_file():
        block.add(PrependPath(str(local_bin)), comment="uv/uvx (Python package installer) PATH")

    return block


def _display_path(path: Path, home: Path) -> str:
    try:
        return "~/" + path.relative_to(home).as_posix()
    except ValueError:
        return str(path)


def step_1_validate_credentials(config: SetupConfig) -> None:
    """Test the Bedrock connection before installing anything."""
    print_step("1/5", "Validating AWS Bedrock credentials...")

    try:
        result = require_valid_credentials(config)
    except CredentialValidationError as e:
        status = f"HTTP {e.result.status_code}" if e.result.status_code else e.result.error_code
        print_error(f"Connection failed ({status})")
        if e.result.message:
            console.print(f"   {e.result.message}", markup=False)
        console.print()
        console.print("[yellow]Please check your credentials and try again:[/yellow]")
        for i, hint in enumerate(credential_hints(e.result, config.region), start=1):
            console.print(f"   {i}. {hint}")
        console.print(f"\n   Edit the env file: {config.env_file}")
        raise

    print_success(f"Connection successful (HTTP {result.status_code})")
    if result.preview:
        console.print(f"   [dim]{escape(result.preview)}[/dim]", highlight=False)


def step_2_install_claude(summary: SetupSummary) -> None:
    """Install the Claude Code CLI, bootstrapping npm if needed."""
    print_step("2/5", "Installing Claude Code CLI...")
    summary.claude_version = install_claude_cli()


def step_3_install_mcp(
    summary: SetupSummary,
    operating_system: OperatingSystem,
    install_mcp: bool | None,
    assume_yes: bool = False,
) -> None:
    """Optionally register the recommended MCP servers."""
    print_step("3/5", "Recommended MCP servers (Playwright, Serena)")

    if install_mcp is None:
        if assume_yes:
            install_mcp = MCP_DEFAULT
        else:
            install_mcp = typer.confirm("   Install MCP servers?", default=MCP_DEFAULT)

    if not install_mcp:
        print_warning("Skipping MCP servers installation. Install them later with:")
        for command in mcp_manual_commands():
            console.print(f"      {command}", markup=False)
        return

    summary.mcp_servers = install_mcp_servers(operating_system, Path.cwd())


def print_manual_instructions(text: str) -> None:
    """Show the block for the user to add by hand."""
    console.print("\n[blue]=== MANUAL SETUP INSTRUCTIONS ===[/blue]")
    console.print("Add these lines to your shell configuration file:")
    print_block(text)
    console.print("Common config files:")
    console.print("   - bash: ~/.bashrc or ~/.bash_profile (macOS)")
    console.print("   - zsh:  ~/.zshrc")
    console.print("   - fish: ~/.config/fish/config.fish")


def step_4_configure_shell(
    summary: SetupSummary,
    config: SetupConfig,
    shell: ShellKind,
    operating_system: OperatingSystem,
    home: Path | None = None,
) -> None:
    """
    Persist the Bedrock environment in the shell profile.

    Never aborts setup: every failure falls back to manual instructions.
    """
    print_step("4/5", "Configuring shell to export the Bedrock environment...")
    home = home or Path.home()
    block = build_config_block(config, home)

    try:
        profile = resolve_profile_path(shell, operating_system, home)
    except UnsupportedShellError as e:
        print_warning(str(e))
        print_manual_instructions(render_block(ShellKind.UNKNOWN, block, home))
        summary.shell_status = "manual steps required"
        return

    shown = _display_path(profile, home)
    try:
        outcome = append_config_block(profile, MARKER, block, shell, home)
    except ShellProfileError as e:
        print_error(str(e))
        print_manual_instructions(render_block(shell, block, home))
        summary.shell_status = "manual steps required"
        return

    try:
        chained = ensure_login_chain(shell, operating_system, home)
    except ShellProfileError as e:
        print_warning(f"Login shells may not load {shown}: {e}")
        chained = None

    if outcome == Outcome.WRITTEN:
        print_success(f"Added Bedrock configuration to {shown}")
        summary.shell_status = "configured"
    else:
        print_warning(f"Bedrock configuration already present in {shown}")
        console.print(
            f"   Existing values are kept. Edit {shown} by hand to change the token or region."
        )
        summary.shell_status = "already configured"

    if chained is not None:
        print_success(f"Updated {_display_path(chained, home)} so login shells load it")

    summary.reload_command = f"source {shown}"


def step_gitignore(repo_root: Path) -> None:
    """Keep the .env file out of version control."""
    try:
        outcome = ensure_gitignored(repo_root)
    except OSError as e:
        print_warning(f"Could not update .gitignore: {e}")
        return

    if outcome == GitignoreOutcome.CREATED:
        print_success("Created .gitignore with .env")
    elif outcome == GitignoreOutcome.ADDED:
        print_success("Added .env to .gitignore")
    elif outcome == GitignoreOutcome.PRESENT:
        print_warning(".env already in .gitignore")


def step_5_install_vscode(summary: SetupSummary, skip: bool = False) -> None:
    """Install the VS Code extension when the code CLI is available."""
    print_step("5/5", "Installing VS Code extension...")

    if skip:
        print_warning("Skipped (--skip-vscode)")
        return

    if not check_command_exists("code"):
        print_warning("VS Code command-line tool not found")
        console.print("   Install the extension from the VS Code marketplace.")
        return

    if vscode_extension_installed():
        print_warning("Claude Code extension is already installed")
        summary.vscode_extension = True
        return

    result = install_vscode_extension()
    if result.success:
        print_success("Claude Code extension installed")
        summary.vscode_extension = True
    else:
        print_error("Failed to install extension automatically")
        console.print("   Please install it from the VS Code Extensions marketplace.")


def print_summary(summary: SetupSummary, config: SetupConfig) -> None:
    """Print the final configuration report."""
    if summary.shell_configured:
        print_final_success("Setup successful!")
    else:
        console.print()
        console.print("[yellow]⚠ Setup finished with manual steps remaining[/yellow]")

    console.print()
    console.print("[blue]Configuration:[/blue]")
    console.print(f"   Env file:         {config.env_file}")
    console.print(f"   {REGION_VAR}:       {config.region}")
    console.print(f"   {USE_BEDROCK_VAR}: enabled")
    console.print(f"   Shell:            {summary.shell_status}")
    if summary.claude_version:
        console.print(f"   Claude Code:      {summary.claude_version}")
    if summary.mcp_servers:
        console.print(f"   MCP servers:      {', '.join(summary.mcp_servers)}")
    if summary.vscode_extension:
        console.print("   VS Code:          extension installed")

    print_next_steps(summary.reload_command)


@app.command()
def install(
    env_file: Annotated[
        Path,
        typer.Argument(help="Path to the .env file with Bedrock credentials"),
    ] = Path(".env"),
    token: Annotated[
        str | None,
        typer.Option("--token", help=f"Bearer token (overrides {TOKEN_VAR} in the env file)"),
    ] = None,
    region: Annotated[
        str | None,
        typer.Option("--region", help=f"AWS region (overrides {REGION_VAR} in the env file)"),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip prompts, using their defaults"),
    ] = False,
    mcp: Annotated[
        bool | None,
        typer.Option("--mcp/--no-mcp", help="Install MCP servers without asking"),
    ] = None,
    skip_vscode: Annotated[
        bool,
        typer.Option("--skip-vscode", help="Do not install the VS Code extension"),
    ] = False,
    shell_path: Annotated[
        str | None,
        typer.Option("--shell", help="Login shell to configure (defaults to $SHELL)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show diagnostic logging"),
    ] = False,
) -> None:
    """
    Set up Claude Code CLI with AWS Bedrock.

    1. Validate AWS Bedrock credentials

    2. Install Claude Code CLI (via npm)

    3. Install MCP servers (optional)

    4. Configure shell to export the Bedrock environment

    5. Install VS Code extension
    """
    configure_logging(verbose)

    try:
        print_header("Claude Code CLI + Bedrock Setup")
        print_plan()

        if not yes and not typer.confirm("Do you want to continue with the installation?"):
            console.print("[yellow]Installation cancelled by user.[/yellow]")
            raise typer.Exit(0)

        if token is None and not env_file.is_file():
            print_error(f".env file not found at: {env_file}")
            console.print("\nCreate a .env file with the following content:\n")
            print_block(SAMPLE_ENV)
            if yes:
                raise typer.Exit(1)
            token = typer.prompt(f"Or enter {TOKEN_VAR} now", hide_input=True)

        config = get_setup_config(env_file, token=token, region=region)
        export_to_process(config)

        shell = ShellKind.from_shell_path(shell_path or os.environ.get("SHELL"))
        operating_system = OperatingSystem.from_platform(platform.system())

        print_config(
            env_file=str(config.env_file),
            region=config.region,
            masked_token=mask_secret(config.bearer_token),
            shell=shell.value,
            operating_system=operating_system.value,
        )

        summary = SetupSummary()

        step_1_validate_credentials(config)
        step_2_install_claude(summary)
        step_3_install_mcp(summary, operating_system, mcp, assume_yes=yes)
        step_4_configure_shell(summary, config, shell, operating_system)
        step_gitignore(Path.cwd())
        step_5_install_vscode(summary, skip=skip_vscode)

        print_summary(summary, config)

    except ConfigurationError:
        raise typer.Exit(1)
    except CredentialValidationError:
        raise typer.Exit(1)
    except CommandError:
        print_error("Cannot proceed without the Claude Code CLI.")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Setup cancelled.[/yellow]")
        raise typer.Exit(130)


def main() -> None:
    """Entry point for the setup script."""
    app()


if __name__ == "__main__":
    main()
