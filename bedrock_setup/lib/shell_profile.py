"""Shell startup file configuration.

Persists environment setup into the user's shell profile as a single
append-only block. The presence of a marker string anywhere in the profile
is the only signal used to decide whether the block was already written.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

_ENV_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_FISH_SAFE = re.compile(r"[A-Za-z0-9_@%+=:,./-]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

_ANSI_C_ESCAPES = {"\n": "\\n", "\t": "\\t", "\r": "\\r"}


class ShellProfileError(Exception):
    """Base class for shell profile configuration errors."""

    pass


class UnsupportedShellError(ShellProfileError):
    """The login shell has no known profile file."""

    def __init__(self, shell: str):
        self.shell = shell
        super().__init__(f"Unsupported shell: {shell}")


class ProfileUnreadableError(ShellProfileError):
    """The profile exists but could not be read."""

    def __init__(self, path: Path, reason: OSError):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason.strerror or reason}")


class WriteFailedError(ShellProfileError):
    """The configuration block could not be appended."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write {path}: {reason}")


class ShellKind(str, Enum):
    BASH = "bash"
    ZSH = "zsh"
    FISH = "fish"
    UNKNOWN = "unknown"

    @classmethod
    def from_shell_path(cls, shell_path: str | None) -> "ShellKind":
        """Map a login shell path such as /bin/zsh to a ShellKind."""
        name = PurePosixPath(shell_path or "").name
        for kind in (cls.BASH, cls.ZSH, cls.FISH):
            if name == kind.value:
                return kind
        return cls.UNKNOWN


class OperatingSystem(str, Enum):
    MACOS = "Darwin"
    LINUX = "Linux"
    OTHER = "other"

    @classmethod
    def from_platform(cls, system: str) -> "OperatingSystem":
        """Map a platform.system() value to an OperatingSystem."""
        for kind in (cls.MACOS, cls.LINUX):
            if system == kind.value:
                return kind
        return cls.OTHER


class Outcome(str, Enum):
    WRITTEN = "written"
    ALREADY_PRESENT = "already_present"


@dataclass(frozen=True)
class SetEnv:
    name: str
    value: str


@dataclass(frozen=True)
class PrependPath:
    directory: str


@dataclass(frozen=True)
class RawInit:
    tool: str


Directive = SetEnv | PrependPath | RawInit


@dataclass
class ConfigBlock:
    """Ordered shell directives written under a single title comment."""

    title: str
    entries: list[tuple[str | None, Directive]] = field(default_factory=list)

    def add(self, directive: Directive, comment: str | None = None) -> "ConfigBlock":
        self.entries.append((comment, directive))
        return self


# Tool bootstrap snippets, passed through verbatim
_INIT_SNIPPETS: dict[str, dict[ShellKind, list[str]]] = {
    "nvm": {
        ShellKind.BASH: [
            'export NVM_DIR="$HOME/.nvm"',
            '[ -s "$NVM_DIR/nvm.sh" ] && \\. "$NVM_DIR/nvm.sh"',
            '[ -s "$NVM_DIR/bash_completion" ] && \\. "$NVM_DIR/bash_completion"',
        ],
        ShellKind.ZSH: [
            'export NVM_DIR="$HOME/.nvm"',
            '[ -s "$NVM_DIR/nvm.sh" ] && \\. "$NVM_DIR/nvm.sh"',
        ],
        ShellKind.FISH: [
            "# Full nvm support in fish: fisher install jorgebucaran/nvm.fish",
            "if test -d ~/.nvm",
            "    bass source ~/.nvm/nvm.sh",
            "end",
        ],
    },
}


def resolve_profile_path(
    shell: ShellKind,
    operating_system: OperatingSystem,
    home: Path | None = None,
) -> Path:
    """
    Return the canonical profile file for a shell on an operating system.

    Pure path computation; nothing is read or created.

    Raises:
        UnsupportedShellError: for ShellKind.UNKNOWN.
    """
    home = home or Path.home()

    if shell == ShellKind.BASH:
        if operating_system == OperatingSystem.MACOS:
            return home / ".bash_profile"
        return home / ".bashrc"
    if shell == ShellKind.ZSH:
        return home / ".zshrc"
    if shell == ShellKind.FISH:
        return home / ".config" / "fish" / "config.fish"

    raise UnsupportedShellError(shell.value)


def _read_profile(path: Path) -> str | None:
    """Read a profile, returning None when it does not exist."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ProfileUnreadableError(path, e) from e


def is_configured(path: Path, marker: str) -> bool:
    """Check whether the marker already appears in the profile."""
    content = _read_profile(path)
    return content is not None and marker in content


def _posix_quote(value: str) -> str:
    if _CONTROL_CHARS.search(value):
        escaped = []
        for char in value:
            if char in ("\\", "'"):
                escaped.append("\\" + char)
            elif char in _ANSI_C_ESCAPES:
                escaped.append(_ANSI_C_ESCAPES[char])
            elif _CONTROL_CHARS.match(char):
                escaped.append(f"\\x{ord(char):02x}")
            else:
                escaped.append(char)
        return "$'" + "".join(escaped) + "'"

    return f'"{_escape_double_quoted(value)}"'


def _escape_double_quoted(value: str) -> str:
    return re.sub(r'([\\"$`])', r"\\\1", value)


def _fish_quote(value: str) -> str:
    if _FISH_SAFE.fullmatch(value):
        return value

    parts = []
    for segment in re.split(r"([\x00-\x1f\x7f])", value):
        if not segment:
            continue
        if _CONTROL_CHARS.fullmatch(segment):
            # Escapes are only interpreted outside quotes in fish
            parts.append(f"\\x{ord(segment):02x}")
        else:
            parts.append("'" + segment.replace("\\", "\\\\").replace("'", "\\'") + "'")
    return "".join(parts) or "''"


def _home_relative(directory: str, home: Path) -> str | None:
    try:
        relative = Path(directory).relative_to(home)
    except ValueError:
        return None
    return relative.as_posix()


def _render_prepend_path(shell: ShellKind, directory: str, home: Path) -> str:
    relative = _home_relative(directory, home)

    if shell == ShellKind.FISH:
        if relative is None:
            target = _fish_quote(directory)
        elif relative == ".":
            target = "$HOME"
        else:
            target = "$HOME/" + _fish_quote(relative)
        return f"set -gx PATH {target} $PATH"

    if _CONTROL_CHARS.search(directory):
        raise ValueError(f"Directory contains control characters: {directory!r}")
    if relative is None:
        target = _escape_double_quoted(directory)
    elif relative == ".":
        target = "$HOME"
    else:
        target = "$HOME/" + _escape_double_quoted(relative)
    return f'export PATH="{target}:$PATH"'


def render_directive(
    shell: ShellKind, directive: Directive, home: Path | None = None
) -> str:
    """
    Render one directive in the syntax of the given shell.

    ShellKind.UNKNOWN renders POSIX syntax so the result can be shown as
    manual instructions.

    Raises:
        ValueError: for an invalid variable name or an unknown init snippet.
    """
    home = home or Path.home()

    if isinstance(directive, SetEnv):
        if not _ENV_NAME.fullmatch(directive.name):
            raise ValueError(f"Invalid environment variable name: {directive.name!r}")
        if shell == ShellKind.FISH:
            return f"set -gx {directive.name} {_fish_quote(directive.value)}"
        return f"export {directive.name}={_posix_quote(directive.value)}"

    if isinstance(directive, PrependPath):
        return _render_prepend_path(shell, directive.directory, home)

    if isinstance(directive, RawInit):
        snippets = _INIT_SNIPPETS.get(directive.tool)
        if snippets is None:
            raise ValueError(f"No init snippet for tool: {directive.tool}")
        lines = snippets.get(shell) or snippets[ShellKind.BASH]
        return "\n".join(lines)

    raise TypeError(f"Unsupported directive: {directive!r}")


def render_block(shell: ShellKind, block: ConfigBlock, home: Path | None = None) -> str:
    """Render the block as literal lines, title comment first."""
    lines = [f"# {block.title}"]
    for comment, directive in block.entries:
        if comment:
            lines.append(f"# {comment}")
        lines.append(render_directive(shell, directive, home))
    return "\n".join(lines)


def _append_text(path: Path, text: str) -> None:
    """Append text with a single write, rolling back a partial write."""
    data = text.encode("utf-8")

    flags = os.O_WRONLY | os.O_APPEND | os.O_CREAT
    created = False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(path, flags | os.O_EXCL, 0o644)
            created = True
        except FileExistsError:
            fd = os.open(path, flags, 0o644)
    except OSError as e:
        raise WriteFailedError(path, e.strerror or str(e)) from e

    failure = None
    try:
        original_size = os.fstat(fd).st_size
        try:
            written = os.write(fd, data)
        except OSError as e:
            failure = e
            _truncate(fd, original_size)
        else:
            if written != len(data):
                _truncate(fd, original_size)
                failure = f"short write ({written} of {len(data)} bytes)"
    finally:
        os.close(fd)

    if failure is None:
        return

    if created:
        _remove_created(path)
    if isinstance(failure, OSError):
        raise WriteFailedError(path, failure.strerror or str(failure)) from failure
    raise WriteFailedError(path, failure)


def _truncate(fd: int, size: int) -> None:
    try:
        os.ftruncate(fd, size)
    except OSError as e:
        logger.warning("Could not roll back partial write: %s", e)


def _remove_created(path: Path) -> None:
    try:
        path.unlink()
    except OSError as e:
        logger.warning("Could not remove %s after failed write: %s", path, e)


def append_config_block(
    path: Path,
    marker: str,
    block: ConfigBlock,
    shell: ShellKind,
    home: Path | None = None,
) -> Outcome:
    """
    Append the rendered block unless the marker is already in the profile.

    The check does not compare values: a profile written by an earlier run
    with a different token or region is left untouched.

    Returns:
        Outcome.WRITTEN or Outcome.ALREADY_PRESENT.

    Raises:
        ProfileUnreadableError: the profile exists but cannot be read.
        WriteFailedError: the block could not be appended in full.
    """
    content = _read_profile(path)
    if content is not None and marker in content:
        logger.info("Marker %s already present in %s", marker, path)
        return Outcome.ALREADY_PRESENT

    title = block.title
    body = render_block(shell, block, home)
    if marker not in body:
        title = f"{block.title} ({marker})"
        body = render_block(shell, ConfigBlock(title, block.entries), home)

    prefix = "\n" if content and not content.endswith("\n") else ""
    _append_text(path, f"{prefix}\n{body}\n")

    logger.info("Appended %d directives to %s", len(block.entries), path)
    return Outcome.WRITTEN


def ensure_login_chain(
    shell: ShellKind,
    operating_system: OperatingSystem,
    home: Path | None = None,
) -> Path | None:
    """
    Make macOS login shells read the interactive startup file.

    zsh: create ~/.zprofile sourcing ~/.zshrc when .zprofile is missing.
    bash: source ~/.bashrc from ~/.bash_profile when .bashrc exists.

    Returns:
        The file that was modified, or None when nothing changed.
    """
    if operating_system != OperatingSystem.MACOS:
        return None

    home = home or Path.home()

    if shell == ShellKind.ZSH:
        zprofile = home / ".zprofile"
        if _read_profile(zprofile) is not None:
            return None
        _append_text(zprofile, "# Source .zshrc\n[ -f ~/.zshrc ] && source ~/.zshrc\n")
        logger.info("Created %s", zprofile)
        return zprofile

    if shell == ShellKind.BASH:
        bash_profile = home / ".bash_profile"
        if _read_profile(home / ".bashrc") is None:
            return None
        content = _read_profile(bash_profile)
        if content is not None and ".bashrc" in content:
            return None
        prefix = "\n" if content and not content.endswith("\n") else ""
        _append_text(
            bash_profile,
            f"{prefix}\n# Source .bashrc if it exists\n[ -f ~/.bashrc ] && source ~/.bashrc\n",
        )
        logger.info("Chained ~/.bashrc from %s", bash_profile)
        return bash_profile

    return None
