"""Tests for entry, return, tool, branching and iteration generators."""

import logging

import pytest

from stepflow.compiler.generators import get_generator


def _generate(ctx, node_id):
    node = ctx.graph.node_by_id(node_id)
    return get_generator(node.type)(node, ctx)


class TestEntry:
    def test_params_are_picked_from_payload(self, context, linear_graph):
        code = _generate(context(linear_graph), "n1")

        assert code.splitlines() == [
            "const payload = event.payload || {};",
            '_workflowState["n1"] = { input: event.payload, output: { "userId": payload["userId"] } };',
            '_workflowResults.start = _workflowState["n1"].output;',
        ]

    def test_without_params_output_is_payload(self, context, graph, node):
        code = _generate(context(graph([node("n1", "entry", label="Start")])), "n1")

        assert '_workflowState["n1"] = { input: event.payload, output: event.payload };' in code
        assert "step.do" not in code

    def test_tool_input_uses_parameters(self, context, graph, node):
        config = {"toolName": "lookup", "parameters": [{"name": "query", "type": "string"}]}
        code = _generate(context(graph([node("t", "mcp-tool-input", label="Tool In", config=config)])), "t")

        assert 'output: { "query": payload["query"] }' in code
        assert '_workflowResults.toolIn = _workflowState["t"].output;' in code


class TestReturn:
    def test_state_template_value(self, context, linear_graph):
        code = _generate(context(linear_graph), "n3")

        assert "const result = _workflowState[\"n2\"].output.body;" in code
        assert '_workflowResults.done = await step.do("done", async () => {' in code

    def test_default_value(self, context, graph, node):
        code = _generate(context(graph([node("a", "entry"), node("r", "return")], [("a", "r")])), "r")

        assert 'const result = "success";' in code

    def test_variable_return_value(self, context, graph, node):
        config = {"returnValue": {"type": "variable", "value": "state.a.output"}}
        code = _generate(context(graph([node("a", "entry"), node("r", "return", config=config)])), "r")

        assert 'const result = _workflowState["a"].output;' in code

    def test_expression_return_value(self, context, graph, node):
        config = {"returnValue": {"type": "expression", "value": "{{state.a.output.count}} + 1"}}
        code = _generate(context(graph([node("a", "entry"), node("r", "return", config=config)])), "r")

        assert 'const result = _workflowState["a"].output.count + 1;' in code

    def test_static_object_value(self, context, graph, node):
        config = {"value": {"ok": True, "id": "{{state.a.output.id}}"}}
        code = _generate(context(graph([node("a", "entry"), node("r", "return", config=config)])), "r")

        assert 'const result = { "ok": true, "id": _workflowState["a"].output.id };' in code


class TestToolOutput:
    def test_json_format_is_default(self, context, graph, node):
        code = _generate(context(graph([node("a", "entry"), node("o", "mcp-tool-output")], [("a", "o")])), "o")

        assert "const value = inputData;" in code
        assert 'const result = { content: [{ type: "text", text: JSON.stringify(value) }] };' in code

    def test_text_format(self, context, graph, node):
        config = {"format": "text", "responseStructure": {"type": "variable", "value": "state.a.output.answer"}}
        code = _generate(context(graph([node("a", "entry"), node("o", "mcp-tool-output", config=config)])), "o")

        assert 'const value = _workflowState["a"].output.answer;' in code
        assert "text: String(value)" in code

    def test_object_format_adds_structured_content(self, context, graph, node):
        config = {"format": "object"}
        code = _generate(context(graph([node("a", "entry"), node("o", "mcp-tool-output", config=config)])), "o")

        assert "structuredContent: value" in code


class TestConditional:
    def test_simple_comparison_reads_payload(self, context, graph, node):
        config = {"condition": {"type": "simple", "left": "status", "operator": "equals", "right": "active"}}
        code = _generate(context(graph([node("c", "conditional-inline", label="Check", config=config)])), "c")

        assert 'const conditionResult = Boolean(event.payload.status === "active");' in code
        assert 'const branch = conditionResult ? "true" : "false";' in code
        assert 'condition: "status equals active"' in code

    def test_input_data_path(self, context, graph, node):
        config = {"condition": {"left": "inputData.count", "operator": ">", "right": 5}}
        code = _generate(context(graph([node("c", "conditional-inline", config=config)])), "c")

        assert "Boolean(inputData.count > 5)" in code

    def test_contains_operator(self, context, graph, node):
        config = {"condition": {"left": "event.payload.tags", "operator": "contains", "right": "vip"}}
        code = _generate(context(graph([node("c", "conditional-inline", config=config)])), "c")

        assert 'Boolean(String(event.payload.tags).includes(String("vip")))' in code

    def test_unknown_operator_falls_back_to_strict_equality(self, context, graph, node, caplog):
        config = {"condition": {"left": "x", "operator": "~=", "right": 1}}

        with caplog.at_level(logging.WARNING):
            code = _generate(context(graph([node("c", "conditional-inline", config=config)])), "c")

        assert "Boolean(event.payload.x === 1)" in code
        assert "Unsupported operator '~='" in caplog.text

    def test_expression_condition(self, context, graph, node):
        config = {"expression": "{{state.a.output.ok}} && inputData.ready"}
        code = _generate(context(graph([node("a", "entry"), node("c", "conditional-inline", config=config)])), "c")

        assert 'Boolean(_workflowState["a"].output.ok && inputData.ready)' in code

    def test_missing_condition_is_true(self, context, graph, node):
        code = _generate(context(graph([node("c", "conditional-inline")])), "c")

        assert "Boolean(true)" in code

    def test_routes_follow_source_handles(self, context, graph, node):
        """Branch targets come from edge handles, in edge order."""
        document = graph(
            [node("c", "conditional-router", config={"expression": "true"}), node("y", "return"), node("n", "return")],
            [("c", "y", "true"), ("c", "n", "false")],
        )

        code = _generate(context(document), "c")

        assert 'const routes = { "true": ["y"], "false": ["n"] };' in code
        assert "next: routes[branch] || []" in code


class TestRouterCases:
    def test_cases_build_if_chain(self, context, graph, node):
        config = {
            "conditionPath": "tier",
            "cases": [
                {"case": "gold", "value": "gold"},
                {"case": "silver", "value": "silver"},
                {"case": "other", "isDefault": True},
            ],
        }
        code = _generate(context(graph([node("r", "conditional-router", label="Tier", config=config)])), "r")

        assert "const conditionValue = event.payload.tier;" in code
        assert 'let branch = "other";' in code
        assert 'if (conditionValue === "gold") {' in code
        assert '} else if (conditionValue === "silver") {' in code
        routing = '"gold": branch === "gold", "silver": branch === "silver", "other": branch === "other"'
        assert f"const routing = {{ {routing} }};" in code

    def test_no_default_case_means_null_branch(self, context, graph, node):
        config = {"conditionPath": "inputData.kind", "cases": [{"case": "a", "value": 1}]}
        code = _generate(context(graph([node("r", "conditional-router", config=config)])), "r")

        assert "const conditionValue = inputData.kind;" in code
        assert "let branch = null;" in code
        assert "result: branch !== null" in code

    def test_path_matching_another_step_name_reads_payload(self, context, graph, node):
        """Only templates or a ``state.`` prefix read another node."""
        config = {"conditionPath": "fetch.status", "cases": [{"case": "ok", "value": 200}]}
        document = graph(
            [node("f", "http-request", label="Fetch"), node("r", "conditional-router", label="Route", config=config)],
            [("f", "r")],
        )

        code = _generate(context(document), "r")

        assert "const conditionValue = event.payload.fetch.status;" in code

    def test_state_prefix_reads_other_node(self, context, graph, node):
        config = {"condition": {"left": "state.f.output.status", "operator": "===", "right": 200}}
        document = graph([node("f", "http-request"), node("c", "conditional-inline", config=config)], [("f", "c")])

        code = _generate(context(document), "c")

        assert 'Boolean(_workflowState["f"].output.status === 200)' in code

    def test_own_state_is_never_read(self, context, graph, node, caplog):
        config = {"conditionPath": "state.r.tier", "cases": [{"case": "gold", "value": "gold"}]}

        with caplog.at_level(logging.WARNING):
            code = _generate(context(graph([node("r", "conditional-router", config=config)])), "r")

        assert "const conditionValue = event.payload.tier;" in code
        assert "references its own state" in caplog.text


class TestForEach:
    def test_sequential_loop_over_payload_array(self, context, graph, node):
        config = {"array": "users", "itemName": "user", "expression": "user.email", "maxIterations": 50}
        document = graph([node("a", "entry"), node("l", "for-each", label="Each User", config=config)], [("a", "l")])

        code = _generate(context(document), "l")

        assert '_workflowResults.eachUser = await step.do("eachUser", async () => {' in code
        assert "const inputArray = event.payload.users ?? [];" in code
        assert "const items = inputArray.slice(0, 50);" in code
        assert "for (let index = 0; index < items.length; index++) {" in code
        assert "const user = items[index];" in code
        assert "results.push(user.email);" in code
        assert "const result = { items, results, count: results.length, errors };" in code
        assert "throw error;" not in code

    def test_array_from_template_and_strict_errors(self, context, graph, node):
        config = {"array": "{{state.h.output.body.items}}", "continueOnError": False}
        document = graph([node("h", "http-request"), node("l", "for-each", config=config)], [("h", "l")])

        code = _generate(context(document), "l")

        assert 'const inputArray = _workflowState["h"].output.body.items ?? [];' in code
        assert "results.push(item);" in code
        assert "    throw error;" in code

    def test_parallel_settles_every_item(self, context, graph, node):
        config = {"array": "inputData.ids", "parallel": True, "expression": "await lookup(item, index)"}
        code = _generate(context(graph([node("l", "for-each", config=config)])), "l")

        assert (
            "const settled = await Promise.allSettled(items.map(async (item, index) => await lookup(item, index)));"
            in code
        )
        assert "const inputArray = inputData.ids ?? [];" in code
        assert "errors.push({ index: position," in code
        assert "throw settled[position].reason;" not in code

    @pytest.mark.parametrize("config", [{"itemName": "results"}, {"indexName": "new"}, {"itemName": "x", "indexName": "x"}])
    def test_unusable_loop_variable_names(self, context, graph, node, config):
        ctx = context(graph([node("l", "for-each", config=config)]))

        with pytest.raises(ValueError, match="for-each node 'l'"):
            _generate(ctx, "l")
