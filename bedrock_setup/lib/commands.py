"""Subprocess execution for external installers (nvm, npm, uv, claude, code)."""

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .console import print_error, print_success, print_warning
from .shell_profile import OperatingSystem

logger = logging.getLogger(__name__)

NVM_INSTALL_URL = "https://raw.githubusercontent.com/nvm-sh/nvm/v0.39.7/install.sh"
UV_INSTALL_URL = "https://astral.sh/uv/install.sh"
CLAUDE_NPM_PACKAGE = "@anthropic-ai/claude-code"
VSCODE_EXTENSION_ID = "Anthropic.claude-code"

PLAYWRIGHT_MCP = ["npx", "@playwright/mcp@latest"]
SERENA_MCP = [
    "uvx",
    "--from",
    "git+https://github.com/oraios/serena",
    "serena",
    "start-mcp-server",
    "--context",
    "ide-assistant",
    "--project",
]


class CommandError(Exception):
    """External command execution error."""

    pass


@dataclass
class CommandResult:
    """Result of a subprocess command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


def nvm_dir() -> Path:
    return Path(os.environ.get("NVM_DIR") or Path.home() / ".nvm")


def local_bin_dir() -> Path:
    return Path.home() / ".local" / "bin"


def check_command_exists(cmd: str) -> bool:
    """Check if a command is available in PATH."""
    return shutil.which(cmd) is not None


def find_command(cmd: str, extra_dirs: list[Path] | None = None) -> str | None:
    """Locate a command in PATH plus extra directories."""
    search = [os.environ.get("PATH", "")]
    search.extend(str(d) for d in extra_dirs or [])
    return shutil.which(cmd, path=os.pathsep.join(p for p in search if p))


def run_command(
    cmd: list[str],
    env: dict[str, str] | None = None,
    cwd: Path | None = None,
    capture_output: bool = True,
    timeout: float | None = None,
) -> CommandResult:
    """Run a subprocess command."""
    full_env = {**os.environ, **(env or {})}
    logger.debug("Running: %s", shlex.join(cmd))

    try:
        result = subprocess.run(
            cmd,
            env=full_env,
            cwd=cwd,
            capture_output=capture_output,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(returncode=127, stdout="", stderr=f"{cmd[0]}: command not found")
    except subprocess.TimeoutExpired:
        return CommandResult(returncode=124, stdout="", stderr=f"{cmd[0]}: timed out")

    return CommandResult(
        returncode=result.returncode,
        stdout=result.stdout if capture_output else "",
        stderr=result.stderr if capture_output else "",
    )


def get_version(cmd: str, version_flag: str = "--version") -> str | None:
    """Return the first line of a command's version output."""
    result = run_command([cmd, version_flag], timeout=10)
    if not result.success:
        return None
    output = result.stdout.strip() or result.stderr.strip()
    return output.splitlines()[0] if output else None


def run_in_nvm_shell(script: str, capture_output: bool = True) -> CommandResult:
    """Run a bash script with nvm loaded."""
    nvm_sh = nvm_dir() / "nvm.sh"
    preamble = f"export NVM_DIR={shlex.quote(str(nvm_dir()))}; . {shlex.quote(str(nvm_sh))}"
    return run_command(["bash", "-c", f"{preamble} && {script}"], capture_output=capture_output)


def install_nvm() -> bool:
    """Install Node Version Manager through its curl installer."""
    print_warning("Installing nvm (Node Version Manager)...")
    result = run_command(
        ["bash", "-c", f"curl -o- {NVM_INSTALL_URL} | bash"],
        capture_output=False,
    )
    if result.success and (nvm_dir() / "nvm.sh").is_file():
        print_success("nvm installed")
        return True
    print_error("nvm installation failed")
    return False


def _nvm_node_bin() -> Path | None:
    result = run_in_nvm_shell("dirname \"$(nvm which current)\"")
    path = result.stdout.strip()
    return Path(path) if result.success and path else None


def _add_to_process_path(directory: Path) -> None:
    os.environ["PATH"] = f"{directory}{os.pathsep}{os.environ.get('PATH', '')}"


def ensure_npm() -> None:
    """
    Make npm available, installing nvm and Node.js LTS when needed.

    Raises:
        CommandError: npm could not be made available.
    """
    if check_command_exists("npm"):
        print_success(f"npm is already installed ({get_version('npm')})")
        return

    print_warning("npm not found. Installing Node.js LTS via nvm...")

    if (nvm_dir() / "nvm.sh").is_file():
        print_success("nvm is already installed")
    elif not install_nvm():
        print_error("Install nvm manually: https://github.com/nvm-sh/nvm")
        raise CommandError("nvm installation failed")

    result = run_in_nvm_shell("nvm install --lts && nvm use --lts", capture_output=False)
    node_bin = _nvm_node_bin() if result.success else None
    if node_bin is None:
        print_error("Failed to install Node.js via nvm")
        raise CommandError("node installation failed")

    # Later steps run npm, npx and claude from this process
    _add_to_process_path(node_bin)

    if not check_command_exists("npm"):
        print_error("npm still not found after installing Node.js")
        raise CommandError("npm not found")

    print_success(f"Node.js {get_version('node')} and npm {get_version('npm')} installed via nvm")


def install_claude_cli() -> str:
    """
    Install the Claude Code CLI globally through npm.

    Returns:
        The installed CLI version string.

    Raises:
        CommandError: the CLI is still missing after installation.
    """
    if check_command_exists("claude"):
        version = get_version("claude") or "unknown version"
        print_warning(f"Claude Code CLI is already installed ({version})")
        return version

    ensure_npm()

    result = run_command(["npm", "install", "-g", CLAUDE_NPM_PACKAGE], capture_output=False)

    if not result.success or not check_command_exists("claude"):
        print_error("Installation failed. Try manually:")
        print_error(f"   npm install -g {CLAUDE_NPM_PACKAGE}")
        raise CommandError("claude installation failed")

    version = get_version("claude") or "unknown version"
    print_success(f"Claude Code CLI installed ({version})")
    return version


def install_uv(operating_system: OperatingSystem) -> CommandResult:
    """Install uv with Homebrew on macOS when available, else the curl installer."""
    if operating_system == OperatingSystem.MACOS and check_command_exists("brew"):
        return run_command(["brew", "install", "uv"], capture_output=False)
    return run_command(
        ["bash", "-c", f"curl -LsSf {UV_INSTALL_URL} | sh"],
        capture_output=False,
    )


def ensure_uvx(operating_system: OperatingSystem) -> bool:
    """Make uvx available, installing uv when needed."""
    if find_command("uvx", [local_bin_dir()]):
        print_success("uvx is already installed")
        _ensure_local_bin_on_path()
        return True

    print_warning("uvx not found. Installing uv...")
    install_uv(operating_system)
    _ensure_local_bin_on_path()

    if check_command_exists("uvx"):
        print_success("uv/uvx installed")
        return True

    print_warning("uvx installation failed. Install manually:")
    print_warning(f"   curl -LsSf {UV_INSTALL_URL} | sh")
    return False


def _ensure_local_bin_on_path() -> None:
    local_bin = local_bin_dir()
    if str(local_bin) not in os.environ.get("PATH", "").split(os.pathsep):
        _add_to_process_path(local_bin)


def add_mcp_server(name: str, server_cmd: list[str]) -> CommandResult:
    """Register an MCP server with the Claude Code CLI."""
    return run_command(["claude", "mcp", "add", name, "--", *server_cmd])


def install_mcp_servers(operating_system: OperatingSystem, project_path: Path) -> list[str]:
    """
    Install the recommended MCP servers.

    Failures are reported as warnings and skipped.

    Returns:
        Names of the servers that were registered.
    """
    installed = []

    result = add_mcp_server("playwright", PLAYWRIGHT_MCP)
    if result.success:
        print_success("Playwright MCP server installed")
        installed.append("playwright")
    else:
        print_warning("Playwright MCP installation failed (non-critical)")
        logger.debug("claude mcp add playwright: %s", result.stderr.strip())

    if not ensure_uvx(operating_system):
        print_warning("Skipping Serena MCP")
        return installed

    result = add_mcp_server("serena", [*SERENA_MCP, str(project_path)])
    if result.success:
        print_success("Serena MCP server installed")
        installed.append("serena")
    else:
        print_warning("Serena MCP installation failed (non-critical)")
        logger.debug("claude mcp add serena: %s", result.stderr.strip())

    return installed


def mcp_manual_commands(project_path: str = "$(pwd)") -> list[str]:
    """Commands the user can run later to add the MCP servers."""
    return [
        shlex.join(["claude", "mcp", "add", "playwright", "--", *PLAYWRIGHT_MCP]),
        shlex.join(["claude", "mcp", "add", "serena", "--", *SERENA_MCP]) + f" {project_path}",
    ]


def list_vscode_extensions() -> list[str]:
    """List installed VS Code extension identifiers."""
    result = run_command(["code", "--list-extensions"], timeout=60)
    if not result.success:
        return []
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def vscode_extension_installed(extension_id: str = VSCODE_EXTENSION_ID) -> bool:
    wanted = extension_id.lower()
    return any(ext.lower() == wanted for ext in list_vscode_extensions())


def install_vscode_extension(extension_id: str = VSCODE_EXTENSION_ID) -> CommandResult:
    """Install a VS Code extension through the code CLI."""
    return run_command(["code", "--install-extension", extension_id], timeout=300)
