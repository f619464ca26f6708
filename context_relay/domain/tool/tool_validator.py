# Parameter coercion and schema validation for tool inputs
from typing import Dict, Any, List, Optional, Mapping

import jsonschema
import structlog

from context_relay.domain.models.pipeline_state import ToolInput
from .base_tool import BaseTool

logger = structlog.get_logger(__name__)


class ToolInputValidator:
    @staticmethod
    def coerce(raw: Optional[Mapping[str, Any]], default_query: Optional[str] = None) -> ToolInput:
        """Turn a free-form parameter object into a ToolInput.

        Known fields are type-checked and kept, anything else is preserved
        under `parameters`. Malformed known fields are dropped, not fatal.
        """

        if not isinstance(raw, Mapping):
            if raw is not None:
                logger.warning("Ignoring non-object tool parameters", raw_type=type(raw).__name__)
            return ToolInput(query=default_query)

        fields: Dict[str, Any] = {}
        parameters: Dict[str, Any] = {}

        for key, value in raw.items():
            if key in ("query", "timeframe", "category"):
                if isinstance(value, str) and value.strip():
                    fields[key] = value.strip()
                elif value is not None:
                    logger.warning("Dropping malformed tool field", field=key, value=repr(value)[:50])
            elif key == "keywords":
                if isinstance(value, str):
                    fields["keywords"] = [word for word in value.split() if word]
                elif isinstance(value, (list, tuple)):
                    fields["keywords"] = [str(word) for word in value if str(word).strip()]
                else:
                    logger.warning("Dropping malformed tool field", field=key, value=repr(value)[:50])
            elif key == "parameters" and isinstance(value, Mapping):
                parameters.update(value)
            else:
                parameters[key] = value

        fields.setdefault("query", default_query)

        return ToolInput(**fields, parameters=parameters)

    @staticmethod
    def validate_parameters(tool: BaseTool, parameters: Mapping[str, Any]) -> List[str]:
        """Check free-form parameters against the tool's JSON schema; empty list means valid"""

        schema = tool.parameters_schema
        if not schema:
            return []

        try:
            jsonschema.validate(dict(parameters), schema)
        except jsonschema.ValidationError as e:
            return [f"Schema validation failed: {e.message}"]

        return []
