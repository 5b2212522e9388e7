"""Translate raw agent output lines into phrases a designer can follow."""

import re

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
_BORDER_CHARS = set("╭╮╰╯│─┌┐└┘├┤┬┴┼═║ ")


def clean_output_line(line: str) -> str | None:
    """Strip colour codes and whitespace; None for blank or border-only lines."""
    clean = _ANSI_RE.sub("", line).strip()
    if not clean or set(clean) <= _BORDER_CHARS:
        return None
    return clean


def split_output(chunk: str) -> list[str]:
    """Split a chunk of terminal output into cleaned, displayable lines."""
    lines = []
    for raw in chunk.replace("\r", "\n").split("\n"):
        clean = clean_output_line(raw)
        if clean is not None:
            lines.append(clean)
    return lines


def _argument(line: str) -> str:
    return line.split(":", 1)[1].strip()


def _split_ext(name: str) -> tuple[str, str]:
    stem, dot, ext = name.rpartition(".")
    return (stem, ext) if dot else (name, "")


def translate_tool_use(line: str) -> str:
    """Friendly phrase for a tool line such as ``Edit: src/Button.tsx``."""
    if line.startswith(("Edit:", "Write:")):
        target = _argument(line)
        name = target.rsplit("/", 1)[-1] or target
        stem, ext = _split_ext(name)
        if ext in ("tsx", "jsx"):
            return f"Updating {stem} component"
        if ext in ("css", "scss"):
            return "Updating styles"
        if ext in ("ts", "js"):
            return f"Updating {stem}"
        return f"Editing {name}"

    if line.startswith("Read:"):
        name = _argument(line).rsplit("/", 1)[-1]
        if "tailwind" in name:
            return "Checking design tokens"
        if "package" in name:
            return "Checking project configuration"
        return f"Reading {name}"

    if line.startswith("Bash:"):
        command = line[len("Bash:"):].strip()
        if command.startswith(("npm install", "yarn add")):
            return "Installing dependency"
        if command.startswith("npm run build"):
            return "Building project"
        if command.startswith("npm run"):
            return "Running project script"
        return "Running command"

    if line.startswith(("Glob:", "Grep:")):
        return "Scanning project files"

    return line
