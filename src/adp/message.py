"""Wire message construction

Builds the ordered tag list for a matched handler from its declared
pattern and the validated parameter values.
"""

import json
from typing import Any, Dict, List
from dataclasses import dataclass

from adp.manifest import HandlerDescriptor


@dataclass(frozen=True)
class Tag:
    """A single message tag; values are always strings on the wire"""
    name: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "value": self.value}


def tag_value(value: Any) -> str:
    """Render a parameter value as a tag string"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def build_message_tags(handler: HandlerDescriptor, parameters: Dict[str, Any]) -> List[Tag]:
    """Build the tag list for a handler invocation

    Pattern tags come first in declared order ("Action" carries the handler
    action), followed by any remaining parameter tags in declaration order.
    """
    tags: List[Tag] = []
    emitted = set()

    for tag_name in handler.pattern:
        if tag_name == "Action":
            tags.append(Tag("Action", handler.action))
        elif parameters.get(tag_name) is not None:
            tags.append(Tag(tag_name, tag_value(parameters[tag_name])))
        else:
            continue
        emitted.add(tag_name)

    for param in handler.parameters:
        if param.name in emitted:
            continue
        value = parameters.get(param.name)
        if value is not None:
            tags.append(Tag(param.name, tag_value(value)))
            emitted.add(param.name)

    return tags
