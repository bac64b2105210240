import jsonschema

from gatewaychat.tools.base import Tool, normalize_schema


class ToolValidator:
    @staticmethod
    def check_schema(tool: Tool) -> None:
        """Raise ``ValueError`` if the tool's parameter schema is itself invalid."""
        try:
            jsonschema.Draft202012Validator.check_schema(normalize_schema(tool.parameters))
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid parameter schema for tool {tool.name}: {e.message}") from e

    @staticmethod
    def validate(tool: Tool, arguments: dict) -> tuple[bool, str | None]:
        try:
            jsonschema.validate(
                instance=arguments,
                schema=normalize_schema(tool.parameters),
            )
            return True, None
        except jsonschema.ValidationError as e:
            return False, str(e.message)
