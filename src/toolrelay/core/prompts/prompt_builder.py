"""
Dynamic System Prompt Builder

Assembles the loop system prompt at runtime with the tool catalog of the
connected servers and the resources extracted by context compression, so the
model always sees the tools it can actually call.
"""

import json

from toolrelay.core.domain.models import ResourceReference
from toolrelay.core.interfaces.tools import ToolDescriptor


def build_loop_system_prompt(
    base_prompt: str,
    tools_description: str | None = None,
    resources: str | None = None,
) -> str:
    """
    Build the system prompt from base instructions, tools, and resources.

    Args:
        base_prompt: Static instructions including the JSON response contract.
        tools_description: Formatted tool catalog (see ``format_tools_description``).
        resources: Formatted resource list (see ``format_resources``).

    Returns:
        Assembled system prompt with XML-tagged sections:
        - <Base>: Core instructions
        - <ToolsDescription>: Available tools and parameters (if provided)
        - <AvailableResources>: Reusable identifiers (if provided)
    """
    prompt_parts = [f"<Base>\n{base_prompt.strip()}\n</Base>"]

    if tools_description:
        prompt_parts.append(f"<ToolsDescription>\n{tools_description.strip()}\n</ToolsDescription>")

    if resources:
        prompt_parts.append(f"<AvailableResources>\n{resources.strip()}\n</AvailableResources>")

    return "\n\n".join(prompt_parts)


def format_tools_description(tools: list[tuple[str, ToolDescriptor]]) -> str:
    """
    Format ``(server_name, descriptor)`` pairs into a tool catalog.

    Example:
        >>> desc = format_tools_description([("files", ToolDescriptor("read_file"))])
        >>> print(desc)
        Tool: read_file
        Server: files
        Description:
        Parameters: {}
    """
    descriptions = []
    for server_name, tool in tools:
        params = json.dumps(tool.input_schema, indent=2)
        descriptions.append(
            f"Tool: {tool.name}\n"
            f"Server: {server_name}\n"
            f"Description: {tool.description}\n"
            f"Parameters: {params}"
        )
    return "\n\n".join(descriptions)


def format_resources(resources: list[ResourceReference]) -> str:
    """Format extracted resources as one line per identifier."""
    if not resources:
        return ""

    lines = ["Pass these identifiers as the named parameter when a tool needs them:"]
    for resource in resources:
        lines.append(f"- {resource.parameter}={resource.id} ({resource.type.value})")
    return "\n".join(lines)
