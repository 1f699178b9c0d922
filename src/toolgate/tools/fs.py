"""
Filesystem tools for toolgate.

This module provides tools for reading, writing and listing files:
- ReadFileContents: Read a text file, bounded by line count and size
- WriteFileContents: Write or append text to a file (approval required)
- ListDirectory: List the entries of a directory

Security Note:
    SecurityManager runs BEFORE these tools execute: permission,
    injection scan, approval and backup have all passed by the time
    execute() is called.

    However, these tools still handle:
    - Confinement to the working directory or the user's home
    - File not found and permission errors
    - Encoding errors
    - Size limit enforcement
"""

import fnmatch
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from toolgate.schema import PermissionLevel, ToolCategory
from toolgate.tools.base import (
    Tool,
    ToolExecutionContext,
    ToolResult,
    ToolValidationResult,
)

MAX_READ_BYTES = 50 * 1024 * 1024
DEFAULT_MAX_LINES = 1000

# Encoding names accepted in parameters -> Python codec names
ENCODINGS = {
    "UTF-8": "utf-8",
    "ASCII": "ascii",
    "UTF-16": "utf-16",
    "UTF-32": "utf-32",
}


def resolve_confined_path(path_str: str, working_directory: str) -> Path:
    """
    Resolve a path and confine it to the allowed roots.

    Relative paths are resolved against the working directory. The result
    must lie under the working directory or the user's home directory.

    Raises:
        ValueError: If the path is invalid or escapes the allowed roots
    """
    base = Path(working_directory).resolve()
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        path = base / path
    path = path.resolve()

    roots = [base]
    try:
        roots.append(Path.home().resolve())
    except RuntimeError:
        pass

    if not any(path == root or path.is_relative_to(root) for root in roots):
        msg = "Path traversal outside of allowed directories is not permitted"
        raise ValueError(msg)
    return path


class ReadFileContentsTool(Tool):
    """
    Read the contents of a text file.

    Arguments:
        filePath (str): Path to the file (required)
        maxLines (int): Maximum lines to return, 1-10000, default 1000
        encoding (str): UTF-8, ASCII, UTF-16 or UTF-32, default UTF-8

    Returns:
        On success: dict with file_path, lines, line_count, is_truncated,
            file_size, last_modified and encoding
        On failure: Error message describing what went wrong
    """

    @property
    def name(self) -> str:
        return "ReadFileContents"

    @property
    def description(self) -> str:
        return "Read the contents of a text file from the file system"

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.FILE_SYSTEM

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "filePath": {
                    "type": "string",
                    "description": "Path to the file to read",
                    "minLength": 1,
                    "maxLength": 260,
                },
                "maxLines": {
                    "type": "integer",
                    "description": "Maximum number of lines to read (optional, default: 1000)",
                    "minimum": 1,
                    "maximum": 10000,
                    "default": DEFAULT_MAX_LINES,
                },
                "encoding": {
                    "type": "string",
                    "description": "Text encoding to use (optional, default: UTF-8)",
                    "enum": list(ENCODINGS),
                    "default": "UTF-8",
                },
            },
            "required": ["filePath"],
        }

    def get_execution_preview(self, parameters: dict[str, Any]) -> str:
        path = parameters.get("filePath", "")
        max_lines = parameters.get("maxLines", DEFAULT_MAX_LINES)
        encoding = parameters.get("encoding", "UTF-8")
        return f"Read file '{path}' (max {max_lines} lines, {encoding} encoding)"

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        params = context.parameters
        path_str = params["filePath"]
        max_lines = int(params.get("maxLines", DEFAULT_MAX_LINES))
        encoding_name = params.get("encoding", "UTF-8")

        try:
            path = resolve_confined_path(path_str, context.working_directory)
        except (ValueError, OSError) as e:
            return ToolResult.fail(f"Invalid file path: {e}", exception=e)

        if not path.exists():
            return ToolResult.fail(f"File not found: {path}")
        if not path.is_file():
            return ToolResult.fail(f"Not a file: {path}")

        stat = path.stat()
        if stat.st_size > MAX_READ_BYTES:
            return ToolResult.fail(f"File is too large: {stat.st_size:,} bytes (max: 50MB)")

        lines: list[str] = []
        is_truncated = False
        try:
            with path.open("r", encoding=ENCODINGS[encoding_name], newline=None) as f:
                for line in f:
                    if context.is_cancelled:
                        return ToolResult.fail("Operation cancelled")
                    if len(lines) >= max_lines:
                        is_truncated = True
                        break
                    lines.append(line.rstrip("\r\n"))
        except PermissionError as e:
            return ToolResult.fail(f"Access denied: {path_str}", exception=e)
        except UnicodeDecodeError as e:
            return ToolResult.fail(
                f"Encoding error reading {path_str}: {e}. Try a different encoding.",
                exception=e,
            )
        except OSError as e:
            return ToolResult.fail(f"IO error reading file: {e}", exception=e)

        data = {
            "file_path": str(path),
            "lines": lines,
            "line_count": len(lines),
            "is_truncated": is_truncated,
            "file_size": stat.st_size,
            "last_modified": datetime.fromtimestamp(stat.st_mtime, UTC).isoformat(),
            "encoding": encoding_name,
        }
        message = f"Successfully read {len(lines)} lines from {path.name}"
        if is_truncated:
            message += f" (truncated at {max_lines} lines)"
        return ToolResult.ok(data, message=message)


class WriteFileContentsTool(Tool):
    """
    Write content to a file.

    Arguments:
        filePath (str): Path to the file (required)
        content (str): Text to write (required)
        mode (str): "overwrite" (default) or "append"

    Returns:
        On success: dict with file_path, bytes_written and mode
        On failure: Error message describing what went wrong
    """

    @property
    def name(self) -> str:
        return "WriteFileContents"

    @property
    def description(self) -> str:
        return "Write or append text content to a file on the file system"

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.FILE_SYSTEM

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.USER

    @property
    def requires_approval(self) -> bool:
        return True

    @property
    def is_modifying(self) -> bool:
        return True

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "filePath": {
                    "type": "string",
                    "description": "Path to the file to write",
                    "minLength": 1,
                    "maxLength": 260,
                },
                "content": {
                    "type": "string",
                    "description": "Text content to write",
                },
                "mode": {
                    "type": "string",
                    "description": "Write mode (optional, default: overwrite)",
                    "enum": ["overwrite", "append"],
                    "default": "overwrite",
                },
            },
            "required": ["filePath", "content"],
        }

    def get_execution_preview(self, parameters: dict[str, Any]) -> str:
        path = parameters.get("filePath", "")
        content = parameters.get("content", "")
        mode = parameters.get("mode", "overwrite")
        verb = "Append" if mode == "append" else "Write"
        return f"{verb} {len(str(content))} characters to '{path}'"

    def backup_targets(self, parameters: dict[str, Any], working_directory: str) -> list[Path]:
        try:
            return [resolve_confined_path(parameters["filePath"], working_directory)]
        except (KeyError, ValueError, OSError):
            return []

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        params = context.parameters
        path_str = params["filePath"]
        content = params["content"]
        mode = params.get("mode", "overwrite")

        try:
            path = resolve_confined_path(path_str, context.working_directory)
        except (ValueError, OSError) as e:
            return ToolResult.fail(f"Invalid file path: {e}", exception=e)

        if not path.parent.exists():
            return ToolResult.fail(f"Parent directory does not exist: {path.parent}")
        if path.exists() and not path.is_file():
            return ToolResult.fail(f"Not a file: {path}")

        try:
            with path.open("a" if mode == "append" else "w", encoding="utf-8") as f:
                f.write(content)
        except PermissionError as e:
            return ToolResult.fail(f"Access denied: {path_str}", exception=e)
        except OSError as e:
            return ToolResult.fail(f"Error writing {path_str}: {e}", exception=e)

        bytes_written = len(content.encode("utf-8"))
        return ToolResult.ok(
            {"file_path": str(path), "bytes_written": bytes_written, "mode": mode},
            message=f"Wrote {bytes_written} bytes to {path.name} ({mode})",
            modified_files=[str(path)],
        )


class ListDirectoryTool(Tool):
    """
    List the entries of a directory.

    Arguments:
        directoryPath (str): Directory to list, default "."
        pattern (str): Glob pattern matched against entry names, default "*"
        maxEntries (int): Maximum entries to return, 1-1000, default 200
    """

    @property
    def name(self) -> str:
        return "ListDirectory"

    @property
    def description(self) -> str:
        return "List files and subdirectories in a directory"

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.FILE_SYSTEM

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "directoryPath": {
                    "type": "string",
                    "description": "Directory to list (optional, default: working directory)",
                    "maxLength": 260,
                    "default": ".",
                },
                "pattern": {
                    "type": "string",
                    "description": "Glob pattern for entry names (optional, default: *)",
                    "default": "*",
                },
                "maxEntries": {
                    "type": "integer",
                    "description": "Maximum number of entries (optional, default: 200)",
                    "minimum": 1,
                    "maximum": 1000,
                    "default": 200,
                },
            },
        }

    def validate_parameters(self, parameters: dict[str, Any]) -> ToolValidationResult:
        result = super().validate_parameters(parameters)
        if not result.is_valid:
            return result
        if parameters.get("pattern") == "":
            return ToolValidationResult.invalid(["pattern: must not be empty"])
        return result

    def get_execution_preview(self, parameters: dict[str, Any]) -> str:
        path = parameters.get("directoryPath", ".")
        pattern = parameters.get("pattern", "*")
        return f"List entries of '{path}' matching '{pattern}'"

    def execute(self, context: ToolExecutionContext) -> ToolResult:
        params = context.parameters
        path_str = params.get("directoryPath", ".")
        pattern = params.get("pattern", "*")
        max_entries = int(params.get("maxEntries", 200))

        try:
            path = resolve_confined_path(path_str, context.working_directory)
        except (ValueError, OSError) as e:
            return ToolResult.fail(f"Invalid directory path: {e}", exception=e)

        if not path.exists():
            return ToolResult.fail(f"Directory not found: {path}")
        if not path.is_dir():
            return ToolResult.fail(f"Not a directory: {path}")

        entries: list[dict[str, Any]] = []
        is_truncated = False
        try:
            for child in sorted(path.iterdir(), key=lambda p: p.name):
                if not fnmatch.fnmatch(child.name, pattern):
                    continue
                if len(entries) >= max_entries:
                    is_truncated = True
                    break
                is_dir = child.is_dir()
                entries.append({
                    "name": child.name,
                    "type": "directory" if is_dir else "file",
                    "size": None if is_dir else child.stat().st_size,
                })
        except PermissionError as e:
            return ToolResult.fail(f"Access denied: {path_str}", exception=e)
        except OSError as e:
            return ToolResult.fail(f"Error listing {path_str}: {e}", exception=e)

        return ToolResult.ok(
            {
                "directory": str(path),
                "entries": entries,
                "count": len(entries),
                "is_truncated": is_truncated,
            },
            message=f"Found {len(entries)} entries in {path.name or str(path)}",
        )
