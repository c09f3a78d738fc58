from __future__ import annotations

import sys
from typing import Any, Callable, Dict, List

from jsonschema import Draft7Validator

from agile_planner.context import ServerContext
from agile_planner.errors import ErrorCode, InternalError, ProviderError, ValidationError
from agile_planner.generation.prompts import load_prompt
from agile_planner.generation.retry_loop import GenerationOutcome, generate
from agile_planner.protocol.catalog import ToolSpec, find_tool
from agile_planner.validators.schema import EntitySchema, missing_fields, validate_against_schema


def validate_arguments(tool: ToolSpec, arguments: Dict[str, Any]) -> Dict[str, Any]:
    schema = EntitySchema.from_json_schema(tool.name, tool.input_schema)
    result = validate_against_schema(arguments, schema)
    if not result.valid:
        raise ValidationError(
            f"Invalid arguments for tool '{tool.name}'.",
            {
                "tool": tool.name,
                "missing": missing_fields(arguments, schema),
                "errors": list(result.errors),
            },
        )

    keyword_errors = sorted(
        Draft7Validator(tool.input_schema).iter_errors(arguments),
        key=lambda error: list(error.absolute_path),
    )
    if keyword_errors:
        raise ValidationError(
            f"Invalid arguments for tool '{tool.name}'.",
            {
                "tool": tool.name,
                "missing": [],
                "errors": [
                    f"{error.message} at /{'/'.join(str(part) for part in error.absolute_path)}"
                    for error in keyword_errors
                ],
            },
        )
    return arguments


def raise_for_outcome(outcome: GenerationOutcome, tool_name: str) -> Dict:
    if outcome.success and outcome.result is not None:
        return outcome.result
    error = outcome.error or {}
    details = dict(error.get("details") or {})
    details["tool"] = tool_name
    if error.get("code") == ErrorCode.PROVIDER.value:
        raise ProviderError(error.get("message", "Generation failed."), details)
    raise ValidationError(error.get("message", "Generated content is invalid."), details)


class GenerationTool:
    name = ""
    prompt_name = ""
    kind = ""

    def __init__(self, context: ServerContext) -> None:
        self.context = context

    def run(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        tool = find_tool(self.name)
        validate_arguments(tool, arguments)

        schema = self.context.validators.schema_for(self.kind)
        template = load_prompt(self.prompt_name)
        values = dict(self.prompt_values(arguments))
        values["SCHEMA"] = schema.to_json_schema()
        messages = template.messages(values)

        client = self.context.client()
        print(f"[tool] name={self.name} client={client.name}", file=sys.stderr)
        outcome = generate(client, messages, self.kind, validators=self.context.validators)
        result = raise_for_outcome(outcome, self.name)

        output_path = self.context.resolve_output_path(arguments.get("outputPath"))
        try:
            manifest = self.write(result, output_path, arguments)
        except (OSError, ValueError) as exc:
            raise InternalError.wrap(
                f"Generated content could not be written to {output_path}.",
                exc,
                tool=self.name,
                outputPath=str(output_path),
            ) from exc

        summary = self.summarize(result)
        summary.update(
            {
                "outputPath": str(output_path),
                "files": manifest["files"],
                "attempts": outcome.attempts,
            }
        )
        return {
            "content": [{"type": "text", "text": self.message(result, arguments)}],
            "structuredContent": summary,
        }

    def prompt_values(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def write(self, result: Dict, output_path, arguments: Dict[str, Any]) -> Dict:
        return self.context.writer.write(result, output_path, kind=self.kind)

    def summarize(self, result: Dict) -> Dict[str, Any]:
        raise NotImplementedError

    def message(self, result: Dict, arguments: Dict[str, Any]) -> str:
        raise NotImplementedError


class BacklogTool(GenerationTool):
    name = "generateBacklog"
    prompt_name = "backlog_generation"
    kind = "backlog"

    def prompt_values(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "PROJECT_NAME": arguments["projectName"],
            "PROJECT_DESCRIPTION": arguments["projectDescription"],
        }

    def summarize(self, result: Dict) -> Dict[str, Any]:
        epics = result.get("epics") or []
        features = [feature for epic in epics for feature in epic.get("features") or []]
        stories = [story for feature in features for story in feature.get("stories") or []]
        return {
            "projectName": result.get("projectName"),
            "epicCount": len(epics),
            "featureCount": len(features),
            "userStoryCount": len(stories),
            "mvpStoryCount": len(result.get("mvp") or []),
            "iterationCount": len(result.get("iterations") or []),
        }

    def message(self, result: Dict, arguments: Dict[str, Any]) -> str:
        return f"Backlog generated for '{arguments['projectName']}'."


class FeatureTool(GenerationTool):
    name = "generateFeature"
    prompt_name = "feature_generation"
    kind = "feature"

    def prompt_values(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "FEATURE_DESCRIPTION": arguments["featureDescription"],
            "BUSINESS_VALUE": arguments.get("businessValue") or "not specified",
            "STORY_COUNT": str(arguments.get("storyCount") or 3),
            "ITERATION_NAME": self.iteration_name(arguments),
        }

    def iteration_name(self, arguments: Dict[str, Any]) -> str:
        return arguments.get("iterationName") or "next"

    def write(self, result: Dict, output_path, arguments: Dict[str, Any]) -> Dict:
        return self.context.writer.write(
            result, output_path, kind=self.kind, iteration_name=self.iteration_name(arguments)
        )

    def summarize(self, result: Dict) -> Dict[str, Any]:
        return {
            "featureId": result.get("id"),
            "featureName": result.get("title"),
            "storyCount": len(result.get("stories") or []),
        }

    def message(self, result: Dict, arguments: Dict[str, Any]) -> str:
        return f"Feature '{result.get('title')}' generated with {len(result.get('stories') or [])} user stories."


TOOL_HANDLERS: Dict[str, Callable[[ServerContext], GenerationTool]] = {
    BacklogTool.name: BacklogTool,
    FeatureTool.name: FeatureTool,
}


def known_tools() -> List[str]:
    return list(TOOL_HANDLERS)


