"""Tests for transform, sleep, wait-event and validate generators."""

import logging

import pytest

from stepflow.compiler.generators.utils import (
    generate_sleep,
    generate_transform,
    generate_validate,
    generate_wait_event,
    rewrite_transform_code,
    sleep_plan,
    wait_timeout_ms,
)


def _single(context, graph, node, node_type, config, label="Work"):
    ctx = context(graph([node("s", "entry", label="Start"), node("x", node_type, label=label, config=config)], [("s", "x")]))
    return ctx.graph.node_by_id("x"), ctx


class TestRewriteTransformCode:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("return input.items.length", "(inputData.items.length)"),
            ("return data;", "(inputData)"),
            ("data.map((x) => x * 2)", "(inputData.map((x) => x * 2))"),
            ("return { ...data, source: 'data' }", "({ ...inputData, source: 'data' })"),
            ("return response.data", "(response.data)"),
            ("", "inputData"),
        ],
    )
    def test_expressions(self, code, expected):
        assert rewrite_transform_code(code) == expected

    def test_statements_become_async_iife(self):
        code = "const total = input.a + input.b;\nreturn { total };"

        assert rewrite_transform_code(code) == (
            "await (async () => {\n  const total = inputData.a + inputData.b;\n  return { total };\n})()"
        )

    def test_single_statement_without_return_is_wrapped(self):
        assert rewrite_transform_code("const x = 1").startswith("await (async () => {")

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("inputData.returnCode > 0", "(inputData.returnCode > 0)"),
            ("data.returned ?? data.returnValue", "(inputData.returned ?? inputData.returnValue)"),
        ],
    )
    def test_identifiers_containing_return_stay_expressions(self, code, expected):
        assert rewrite_transform_code(code) == expected


class TestTransform:
    def test_templates_resolve_before_rewrite(self, context, graph, node):
        transform, ctx = _single(context, graph, node, "transform", {"code": "return {{state.s.output}}.length"})

        code = generate_transform(transform, ctx)

        assert 'const result = (_workflowState["s"].output.length);' in code
        assert '_workflowResults.work = await step.do("work", async () => {' in code

    def test_default_code_passes_input_through(self, context, graph, node):
        transform, ctx = _single(context, graph, node, "transform", {})

        assert "const result = (inputData);" in generate_transform(transform, ctx)


class TestSleepPlan:
    @pytest.mark.parametrize(
        "config,expected",
        [
            ({"duration": 5000}, ("relative", 5000)),
            ({"duration": {"value": 2, "unit": "minutes"}}, ("relative", 120_000)),
            ({"duration": {"type": "relative", "value": 1.5, "unit": "s"}}, ("relative", 1500)),
            ({"duration": {"value": 1, "unit": "days"}}, ("relative", 86_400_000)),
            ({"duration": {"type": "absolute", "timestamp": "2030-01-01T00:00:00Z"}}, ("absolute", "2030-01-01T00:00:00Z")),
            ({"duration": {"type": "absolute"}}, ("relative", 1000)),
            ({}, ("relative", 1000)),
        ],
    )
    def test_plans(self, config, expected):
        assert sleep_plan(config) == expected

    def test_unknown_unit_is_seconds(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert sleep_plan({"duration": {"value": 3, "unit": "fortnights"}}) == ("relative", 3000)

        assert "Unknown sleep unit 'fortnights'" in caplog.text


class TestSleep:
    def test_relative_sleep_is_a_top_level_step(self, context, graph, node):
        sleep, ctx = _single(context, graph, node, "sleep", {"duration": 5000}, label="Wait")

        code = generate_sleep(sleep, ctx)

        assert 'await step.sleep("wait", 5000);' in code
        assert "step.do" not in code
        assert '_workflowState["x"] = { input: inputData, output: { sleptMs: 5000 } };' in code
        assert '_workflowResults.wait = _workflowState["x"].output;' in code

    def test_absolute_sleep(self, context, graph, node):
        config = {"duration": {"type": "absolute", "timestamp": 1893456000000}}
        sleep, ctx = _single(context, graph, node, "sleep", config, label="Wait")

        code = generate_sleep(sleep, ctx)

        assert 'await step.sleepUntil("wait", new Date(1893456000000));' in code


class TestWaitEvent:
    def test_wait_without_timeout_propagates_errors(self, context, graph, node):
        wait, ctx = _single(context, graph, node, "wait-event", {"eventType": "approval"}, label="Approval")

        code = generate_wait_event(wait, ctx)

        assert 'received = await step.waitForEvent("approval", { type: "approval" });' in code
        assert "catch" not in code
        assert "step.do" not in code
        assert '_workflowState["x"] = { input: inputData, output: { event: received, timedOut } };' in code
        assert '_workflowResults.approval = _workflowState["x"].output;' in code

    def test_continue_on_timeout(self, context, graph, node):
        config = {"eventType": "payment", "timeout": {"value": 24, "unit": "hours"}, "timeoutBehavior": "continue"}
        wait, ctx = _single(context, graph, node, "wait-event", config, label="Wait")

        code = generate_wait_event(wait, ctx)

        assert 'await step.waitForEvent("wait", { type: "payment", timeout: 86400000 });' in code
        assert "} catch (error) {\n  timedOut = true;\n}" in code

    def test_missing_event_type(self, context, graph, node):
        wait, ctx = _single(context, graph, node, "wait-event", {}, label="Wait")

        with pytest.raises(ValueError, match="needs an eventType"):
            generate_wait_event(wait, ctx)

    @pytest.mark.parametrize(
        "config,expected",
        [
            ({}, None),
            ({"timeout": {"value": 30, "unit": "seconds"}}, 30_000),
            ({"timeout": {"value": 2, "unit": "days"}}, 172_800_000),
        ],
    )
    def test_timeout_ms(self, config, expected):
        assert wait_timeout_ms(config) == expected


class TestValidate:
    RULES = [
        {"field": "email", "type": "required"},
        {"field": "email", "type": "email"},
        {"field": "age", "type": "range", "min": 18, "max": 99},
        {"field": "name", "type": "length", "min": 2, "max": 50},
        {"field": "site", "type": "url"},
        {"field": "code", "type": "regex", "pattern": "^[A-Z]{3}$"},
    ]

    def test_rules_read_the_payload(self, context, graph, node):
        validate, ctx = _single(context, graph, node, "validate", {"rules": self.RULES})

        code = generate_validate(validate, ctx)

        assert "const data = event.payload || {};" in code
        assert "const value = data.email;" in code
        assert 'if (value === undefined || value === null || value === "") {' in code
        assert 'message: "email is required"' in code
        assert "Number(value) < 18 || Number(value) > 99" in code
        assert "String(value).length) < 2" in code
        assert 'new RegExp("^[A-Z]{3}$")' in code

    def test_error_policy_throws(self, context, graph, node):
        validate, ctx = _single(context, graph, node, "validate", {"rules": self.RULES[:1]})

        code = generate_validate(validate, ctx)

        assert 'throw new Error("Validation failed: " + errors.map((e) => e.message).join(", "));' in code

    def test_continue_policy_returns_result(self, context, graph, node):
        config = {"rules": self.RULES[:1], "onFailure": "continue"}
        validate, ctx = _single(context, graph, node, "validate", config)

        code = generate_validate(validate, ctx)

        assert "throw new Error" not in code
        assert "const result = { valid, errors, data: valid ? data : null" in code

    def test_custom_and_unsupported_rules(self, context, graph, node):
        rules = [
            {"field": "total", "type": "custom", "expression": "value > {{state.s.output.min}}", "message": "too small"},
            {"field": "total", "type": "telepathy"},
        ]
        validate, ctx = _single(context, graph, node, "validate", {"rules": rules})

        code = generate_validate(validate, ctx)

        assert 'if (!(value > _workflowState["s"].output.min)) {' in code
        assert 'message: "too small"' in code
        assert '// Unsupported validation rule "telepathy" on field "total"' in code
