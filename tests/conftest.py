"""Root-level test configuration and fixtures."""

import pytest

from stepflow.compiler import WorkflowCompiler
from stepflow.registry import NodeRegistry


@pytest.fixture(autouse=True, scope="function")
def isolate_stepflow_config(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.stepflow and any STEPFLOW_* overrides."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ("STEPFLOW_CYCLE_POLICY", "STEPFLOW_COMPATIBILITY_DATE", "STEPFLOW_HTTP_TIMEOUT_MS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry():
    return NodeRegistry.builtin()


@pytest.fixture
def compiler(registry):
    return WorkflowCompiler(registry)


def make_node(node_id, node_type, label=None, config=None, step_name=None):
    data = {"label": label or node_id, "config": config or {}}
    if step_name:
        data["stepName"] = step_name
    return {"id": node_id, "type": node_type, "position": {"x": 0, "y": 0}, "data": data}


def make_graph(nodes, edges=(), name="Test Workflow"):
    """Build a graph document; edges are (source, target) or (source, target, handle) tuples."""
    edge_docs = []
    for edge in edges:
        source, target = edge[0], edge[1]
        doc = {"id": f"e-{source}-{target}", "source": source, "target": target}
        if len(edge) > 2:
            doc["sourceHandle"] = edge[2]
        edge_docs.append(doc)
    return {"id": "wf-1", "name": name, "nodes": list(nodes), "edges": edge_docs}


@pytest.fixture
def node():
    return make_node


@pytest.fixture
def graph():
    return make_graph


@pytest.fixture
def linear_graph():
    """entry -> http-request -> return."""
    return make_graph(
        [
            make_node("n1", "entry", "Start", {"params": [{"name": "userId"}]}),
            make_node("n2", "http-request", "Fetch User", {"url": "https://api.example.com/users/{{start.userId}}"}),
            make_node("n3", "return", "Done", {"value": "{{state.n2.output.body}}"}),
        ],
        [("n1", "n2"), ("n2", "n3")],
    )
