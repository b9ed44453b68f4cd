"""Collision-free step names for generated code.

A step name is both a JavaScript identifier (``_workflowResults.<name>``) and
the durable step label passed to ``step.do``, so it must stay stable for an
unchanged graph.
"""

import re

from stepflow.core.models import Node, WorkflowGraph

_SEPARATOR_PATTERN = re.compile(r"[^a-zA-Z0-9_]+")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

RESERVED_WORDS = frozenset(
    """
    await break case catch class const continue debugger default delete do else enum export extends
    false finally for function if implements import in instanceof interface let new null package
    private protected public return static super switch this throw true try typeof var void while
    with yield arguments eval undefined
    """.split()
)


def _camel_segment(segment: str, first: bool) -> str:
    if segment.isupper():
        segment = segment.lower()
    head = segment[:1].lower() if first else segment[:1].upper()
    return head + segment[1:]


def to_identifier(name: str) -> str:
    """Normalize free text into a camelCase identifier.

    Casing inside a word is kept, all-caps words are treated as acronyms and
    JavaScript reserved words get a ``Step`` suffix.

    Examples:
        >>> to_identifier("Fetch User Data")
        'fetchUserData'
        >>> to_identifier("fetchUserData")
        'fetchUserData'
        >>> to_identifier("2nd call")
        'step2ndCall'
        >>> to_identifier("return")
        'returnStep'
        >>> to_identifier("!!!")
        'step'
    """
    segments = [segment for segment in _SEPARATOR_PATTERN.sub("-", name).split("-") if segment]
    if not segments:
        return "step"

    identifier = "".join(_camel_segment(segment, index == 0) for index, segment in enumerate(segments))
    if not (identifier[0].isalpha() or identifier[0] == "_"):
        identifier = "step" + identifier[0].upper() + identifier[1:]
    if identifier in RESERVED_WORDS:
        identifier += "Step"
    return identifier


def base_step_name(node: Node) -> str:
    source = node.data.step_name or node.data.label or node.type or "step"
    return to_identifier(source)


def build_step_names(graph: WorkflowGraph) -> dict[str, str]:
    """Assign every node a unique step name, scanning in declaration order.

    Collisions get ``2``, ``3``, ... appended to the base name.

    Returns:
        Mapping of node id to step name, in declaration order
    """
    names: dict[str, str] = {}
    used: set[str] = set()
    for node in graph.nodes:
        if node.id in names:
            continue
        base = base_step_name(node)
        candidate = base
        counter = 2
        while candidate in used:
            candidate = f"{base}{counter}"
            counter += 1
        used.add(candidate)
        names[node.id] = candidate
    return names
