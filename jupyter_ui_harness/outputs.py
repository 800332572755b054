# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

import re
from typing import Any, Dict, List, Optional, Union


ERROR_PATTERNS = {
    'syntax_error': r'\bSyntaxError\s*:\s*(.+)',
    'name_error': r'\bNameError\s*:\s*(.+)',
    'type_error': r'\bTypeError\s*:\s*(.+)',
    'value_error': r'\bValueError\s*:\s*(.+)',
    'attribute_error': r'\bAttributeError\s*:\s*(.+)',
    'key_error': r'\bKeyError\s*:\s*(.+)',
    'index_error': r'\bIndexError\s*:\s*(.+)',
    'zero_division_error': r'\bZeroDivisionError\s*:\s*(.+)',
    'import_error': r'\bImportError\s*:\s*(.+)',
    'module_not_found_error': r'\bModuleNotFoundError\s*:\s*(.+)',
}

_ANSI_ESCAPE = re.compile(r'\x1b\[[0-9;]*m')

# Leading-prefix numbers, the way a browser's parseInt/parseFloat read them.
_INT_PREFIX = re.compile(r'^\s*([+-]?\d+)')
_FLOAT_PREFIX = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?Infinity)')


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return _ANSI_ESCAPE.sub('', text)


def _join(value: Union[str, List[str], None]) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ''.join(value)
    return str(value)


def extract_output(output: Union[dict, Any]) -> str:
    """
    Extracts readable text from a saved nbformat cell output.

    Args:
        output: One entry of a code cell's ``outputs`` list.

    Returns:
        str: A string representation of the output.
    """
    if isinstance(output, list):
        return '\n'.join(extract_output(item) for item in output)

    if not isinstance(output, dict):
        return strip_ansi_codes(str(output))

    output_type = output.get("output_type")

    if output_type == "stream":
        return strip_ansi_codes(_join(output.get("text")))

    elif output_type in ["display_data", "execute_result"]:
        data = output.get("data", {})
        if "text/plain" in data:
            return strip_ansi_codes(_join(data["text/plain"]))
        elif "image/png" in data:
            return "[PNG Image]"
        elif "image/jpeg" in data:
            return "[JPEG Image]"
        elif "image/svg+xml" in data:
            return "[SVG Image]"
        elif "text/html" in data:
            return "[HTML Output]"
        return f"[{output_type} Data: keys={list(data.keys())}]"

    elif output_type == "error":
        traceback = output.get("traceback", [])
        if isinstance(traceback, list):
            return '\n'.join(strip_ansi_codes(str(line)) for line in traceback)
        return strip_ansi_codes(str(traceback))

    return f"[Unknown output type: {output_type}]"


def cell_text_outputs(notebook: Dict[str, Any], cell_index: int) -> List[str]:
    """Return the text of each output of cell ``cell_index`` in a saved notebook.

    Markdown and raw cells have no outputs and yield an empty list.
    """
    cells = notebook.get("cells", [])
    if cell_index < 0 or cell_index >= len(cells):
        raise IndexError(f"Cell {cell_index} out of range (notebook has {len(cells)} cells)")
    cell = cells[cell_index]
    if cell.get("cell_type") != "code":
        return []
    return [extract_output(output) for output in cell.get("outputs", [])]


def parse_int(text: Optional[str]) -> Optional[int]:
    """Parse the leading integer of ``text``; None if there is none."""
    if not isinstance(text, str):
        return None
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else None


def parse_float(text: Optional[str]) -> Optional[float]:
    """Parse the leading float of ``text``; None if there is none."""
    if not isinstance(text, str):
        return None
    match = _FLOAT_PREFIX.match(text)
    if not match:
        return None
    value = match.group(1)
    if value.endswith("Infinity"):
        return float("-inf") if value.startswith("-") else float("inf")
    return float(value)


def detect_error_in_output(output_text: str) -> Optional[Dict[str, str]]:
    """
    Detect a Python exception in rendered output text.

    Returns:
        Optional[Dict]: ``{"type": ..., "message": ...}`` if found, None otherwise
    """
    if not output_text or not isinstance(output_text, str):
        return None

    for error_type, pattern in ERROR_PATTERNS.items():
        match = re.search(pattern, output_text)
        if match:
            return {
                "type": error_type,
                "message": match.group(0).strip(),
            }
    return None
