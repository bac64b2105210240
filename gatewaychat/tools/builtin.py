"""Built-in client-side tools the model can call without a backend."""

from __future__ import annotations

import base64
import binascii
import colorsys
import hashlib
import json
import random
import re
import uuid
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from gatewaychat.tools.base import Tool


class UUIDTool(Tool):
    @property
    def name(self) -> str:
        return "generate_uuid"

    @property
    def description(self) -> str:
        return "Generate a UUID (Universally Unique Identifier)"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "count": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "default": 1,
                    "description": "Number of UUIDs to generate (1-100)",
                },
                "version": {
                    "type": "string",
                    "enum": ["v4"],
                    "default": "v4",
                    "description": "UUID version (currently only v4 is supported)",
                },
            },
        }

    async def execute(self, count: int = 1, version: str = "v4") -> dict:
        uuids = [str(uuid.uuid4()) for _ in range(count)]
        return {"uuids": uuids, "count": len(uuids)}


class Base64Tool(Tool):
    @property
    def name(self) -> str:
        return "base64_convert"

    @property
    def description(self) -> str:
        return "Encode or decode base64 strings"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "enum": ["encode", "decode"],
                    "description": "Operation to perform",
                },
                "input": {
                    "type": "string",
                    "description": "The string to encode or decode",
                },
            },
            "required": ["operation", "input"],
        }

    async def execute(self, operation: str, input: str) -> dict:
        if operation == "encode":
            output = base64.b64encode(input.encode("utf-8")).decode("ascii")
        else:
            try:
                output = base64.b64decode(input, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as exc:
                raise ValueError(f"Failed to decode: {exc}") from exc
        return {"operation": operation, "input": input, "output": output}


class JSONFormatTool(Tool):
    @property
    def name(self) -> str:
        return "json_format"

    @property
    def description(self) -> str:
        return "Validate and format JSON strings"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "json_string": {
                    "type": "string",
                    "description": "The JSON string to validate and format",
                },
                "indent": {
                    "type": "integer",
                    "minimum": 0,
                    "maximum": 8,
                    "default": 2,
                    "description": "Number of spaces for indentation (0-8)",
                },
            },
            "required": ["json_string"],
        }

    async def execute(self, json_string: str, indent: int = 2) -> dict:
        try:
            parsed = json.loads(json_string)
        except json.JSONDecodeError as exc:
            # Invalid input is an answer, not a tool failure.
            return {"valid": False, "error": exc.msg, "input": json_string}

        formatted = json.dumps(parsed, indent=indent or None, ensure_ascii=False)
        return {
            "valid": True,
            "formatted": formatted,
            "type": _json_type(parsed),
            "size": len(json_string),
            "formatted_size": len(formatted),
        }


def _json_type(value: Any) -> str:
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


class URLParseTool(Tool):
    @property
    def name(self) -> str:
        return "parse_url"

    @property
    def description(self) -> str:
        return "Parse and analyze URLs to extract components"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The URL to parse"},
            },
            "required": ["url"],
        }

    async def execute(self, url: str) -> dict:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Invalid URL: {url}")

        port = parts.port
        if port is None:
            port = 443 if parts.scheme == "https" else 80
        origin = f"{parts.scheme}://{parts.netloc.rsplit('@', 1)[-1]}"
        params = dict(parse_qsl(parts.query, keep_blank_values=True))

        return {
            "original": url,
            "protocol": f"{parts.scheme}:",
            "hostname": parts.hostname or "",
            "port": str(port),
            "pathname": parts.path or "/",
            "search": f"?{parts.query}" if parts.query else "",
            "hash": f"#{parts.fragment}" if parts.fragment else "",
            "origin": origin,
            "parameters": params or None,
        }


CHARSETS = {
    "alphanumeric": "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789",
    "alphabetic": "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz",
    "numeric": "0123456789",
    "hex": "0123456789abcdef",
}


class RandomTool(Tool):
    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @property
    def name(self) -> str:
        return "generate_random"

    @property
    def description(self) -> str:
        return "Generate random numbers, strings, or make random selections"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": ["number", "string", "choice"],
                    "description": "Type of random generation",
                },
                "min": {"type": "integer", "description": "Minimum value for number generation"},
                "max": {"type": "integer", "description": "Maximum value for number generation"},
                "length": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 1000,
                    "description": "Length for string generation",
                },
                "charset": {
                    "type": "string",
                    "enum": sorted(CHARSETS),
                    "description": "Character set for string generation",
                },
                "choices": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Array of choices to select from",
                },
                "count": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "default": 1,
                    "description": "Number of items to generate",
                },
            },
            "required": ["type"],
        }

    async def execute(
        self,
        type: str,
        min: int = 0,
        max: int = 100,
        length: int = 16,
        charset: str = "alphanumeric",
        choices: list[str] | None = None,
        count: int = 1,
    ) -> dict:
        if type == "choice" and not choices:
            raise ValueError("Choices array is required and must not be empty for choice type")
        if type == "number" and min > max:
            raise ValueError("min must not be greater than max")

        results: list[Any] = []
        for _ in range(count):
            if type == "number":
                results.append(self._rng.randint(min, max))
            elif type == "string":
                chars = CHARSETS[charset]
                results.append("".join(self._rng.choice(chars) for _ in range(length)))
            else:
                results.append(self._rng.choice(choices))

        return {
            "type": type,
            "count": count,
            "results": results[0] if count == 1 else results,
        }


class HashTool(Tool):
    @property
    def name(self) -> str:
        return "hash_string"

    @property
    def description(self) -> str:
        return "Generate hash values for strings using various algorithms"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "input": {"type": "string", "description": "The string to hash"},
                "algorithm": {
                    "type": "string",
                    "enum": ["sha1", "sha256"],
                    "default": "sha256",
                    "description": "Hash algorithm to use",
                },
            },
            "required": ["input"],
        }

    async def execute(self, input: str, algorithm: str = "sha256") -> dict:
        digest = hashlib.new(algorithm, input.encode("utf-8")).hexdigest()
        return {"algorithm": algorithm, "input_length": len(input), "hash": digest}


LOREM_WORDS = (
    "lorem ipsum dolor sit amet consectetur adipiscing elit sed do eiusmod tempor "
    "incididunt ut labore et dolore magna aliqua ut enim ad minim veniam quis "
    "nostrud exercitation ullamco laboris nisi ut aliquip ex ea commodo consequat "
    "duis aute irure dolor in reprehenderit in voluptate velit esse cillum dolore "
    "eu fugiat nulla pariatur excepteur sint occaecat cupidatat non proident sunt "
    "in culpa qui officia deserunt mollit anim id est laborum"
).split()


class LoremTool(Tool):
    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @property
    def name(self) -> str:
        return "generate_lorem_ipsum"

    @property
    def description(self) -> str:
        return "Generate Lorem Ipsum placeholder text"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "paragraphs": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 10,
                    "default": 1,
                    "description": "Number of paragraphs to generate",
                },
                "sentence_count": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 20,
                    "default": 5,
                    "description": "Number of sentences per paragraph",
                },
            },
        }

    def _sentence(self) -> str:
        words = [self._rng.choice(LOREM_WORDS) for _ in range(self._rng.randint(5, 14))]
        sentence = " ".join(words)
        return sentence[0].upper() + sentence[1:] + "."

    async def execute(self, paragraphs: int = 1, sentence_count: int = 5) -> dict:
        result = [
            " ".join(self._sentence() for _ in range(sentence_count))
            for _ in range(paragraphs)
        ]
        return {"text": "\n\n".join(result), "paragraphs": len(result)}


_RGB_RE = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)")


class ColorTool(Tool):
    @property
    def name(self) -> str:
        return "convert_color"

    @property
    def description(self) -> str:
        return "Convert colors between Hex, RGB, and HSL formats"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "color": {
                    "type": "string",
                    "description": 'The color string to convert (e.g., "#FF5733", "rgb(255, 87, 51)")',
                },
                "to": {
                    "type": "string",
                    "enum": ["hex", "rgb", "hsl"],
                    "description": "The target format",
                },
            },
            "required": ["color", "to"],
        }

    async def execute(self, color: str, to: str) -> dict:
        r, g, b = _parse_color(color)
        if to == "hex":
            return {"result": f"#{r:02X}{g:02X}{b:02X}"}
        if to == "rgb":
            return {"result": f"rgb({r}, {g}, {b})"}
        h, lightness, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
        return {
            "result": f"hsl({round(h * 360)}, {round(s * 100)}%, {round(lightness * 100)}%)"
        }


def _parse_color(color: str) -> tuple[int, int, int]:
    if color.startswith("#"):
        hex_digits = color[1:]
        if len(hex_digits) != 6:
            raise ValueError("Hex colors must use the #RRGGBB form")
        try:
            return (
                int(hex_digits[0:2], 16),
                int(hex_digits[2:4], 16),
                int(hex_digits[4:6], 16),
            )
        except ValueError as exc:
            raise ValueError(f"Invalid hex color: {color}") from exc
    if color.startswith("rgb"):
        match = _RGB_RE.match(color)
        if not match:
            raise ValueError("Invalid RGB format")
        return int(match.group(1)), int(match.group(2)), int(match.group(3))
    raise ValueError(
        "Unsupported input format. Please use Hex (#RRGGBB) or RGB (rgb(r, g, b))"
    )


BUILTIN_TOOLS: tuple[type[Tool], ...] = (
    UUIDTool,
    Base64Tool,
    JSONFormatTool,
    URLParseTool,
    RandomTool,
    HashTool,
    LoremTool,
    ColorTool,
)


def register_builtin_tools(registry, disabled: set[str] | None = None) -> int:
    """Register every built-in tool not named in *disabled*; returns the count."""
    count = 0
    for tool_cls in BUILTIN_TOOLS:
        tool = tool_cls()
        if disabled and tool.name in disabled:
            continue
        registry.register(tool)
        count += 1
    return count
