"""Recover a graph skeleton from a module generated by this compiler.

Every generated node logs a ``WF_NODE_START`` event carrying its id, name and
type, so the nodes and their execution order can be read back from the
source. Configs are not recovered, and edges simply chain the nodes in
execution order.
"""

import json
import re
from typing import Any

_JS_STRING = r'"(?:[^"\\]|\\.)*"'
_NODE_START = re.compile(
    rf'type: "WF_NODE_START", nodeId: ({_JS_STRING}), nodeName: ({_JS_STRING}), nodeType: ({_JS_STRING})'
)
_STEP_LABEL = re.compile(rf"step\.(?:do|sleep|sleepUntil|waitForEvent)\(({_JS_STRING})")
_RESULT_ASSIGNMENT = re.compile(r"_workflowResults\.([A-Za-z_$][\w$]*) =")
_ENTRYPOINT = re.compile(r"export class (\w+) extends WorkflowEntrypoint")


def decompile_module(source: str) -> dict[str, Any]:
    """Parse generated module source back into a graph document.

    Returns:
        ``{"name", "nodes", "edges"}``; nodes carry id, type, label and step name

    Raises:
        ValueError: If the source contains no generated node markers
    """
    starts = list(_NODE_START.finditer(source))
    if not starts:
        raise ValueError("No generated node markers found; was this module produced by stepflow?")

    nodes: list[dict[str, Any]] = []
    for index, match in enumerate(starts):
        node_id, name, node_type = (json.loads(group) for group in match.groups())
        end = starts[index + 1].start() if index + 1 < len(starts) else len(source)
        segment = source[match.end() : end]

        data: dict[str, Any] = {"label": name, "config": {}}
        label_match = _STEP_LABEL.search(segment)
        assignment = _RESULT_ASSIGNMENT.search(segment)
        if label_match:
            data["stepName"] = json.loads(label_match.group(1))
        elif assignment:
            data["stepName"] = assignment.group(1)
        nodes.append({"id": node_id, "type": node_type, "data": data})

    edges = [
        {"id": f"e-{source_node['id']}-{target['id']}", "source": source_node["id"], "target": target["id"]}
        for source_node, target in zip(nodes, nodes[1:])
    ]

    entrypoint = _ENTRYPOINT.search(source)
    name = entrypoint.group(1) if entrypoint else "workflow"
    return {"id": name, "name": name, "nodes": nodes, "edges": edges}
