"""Built-in node catalog.

Plain data: one entry per node type with its config schema (JSON Schema
draft 7) and the bindings it needs. ``NodeRegistry.builtin()`` turns these
into ``NodeDefinition`` objects.
"""

from typing import Any

DEFAULT_KV_BINDING = "KV"
DEFAULT_D1_BINDING = "DB"
DEFAULT_AI_BINDING = "AI"
DEFAULT_AI_MODEL = "@cf/meta/llama-3.1-8b-instruct"

_PARAMETER_LIST = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string", "minLength": 1},
            "type": {"type": "string", "enum": ["string", "number", "boolean", "object", "array"]},
            "required": {"type": "boolean"},
            "description": {"type": "string"},
        },
        "required": ["name"],
    },
}

_VALUE_SOURCE = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": ["static", "literal", "variable", "expression"]},
    },
    "required": ["type"],
}

BUILTIN_NODE_DEFINITIONS: list[dict[str, Any]] = [
    {
        "metadata": {
            "type": "entry",
            "name": "Entry",
            "description": "Workflow entry point receiving the event payload",
            "category": "flow",
        },
        "configSchema": {"type": "object", "properties": {"params": _PARAMETER_LIST}},
        "presetOutput": {"payload": {}},
    },
    {
        "metadata": {
            "type": "return",
            "name": "Return",
            "description": "Return a value from the workflow",
            "category": "flow",
        },
        "configSchema": {
            "type": "object",
            "properties": {"value": {}, "returnValue": _VALUE_SOURCE},
        },
        "presetOutput": {"result": "success"},
    },
    {
        "metadata": {
            "type": "http-request",
            "name": "HTTP Request",
            "description": "Call an external HTTP API",
            "category": "http",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "url": {"type": "string", "minLength": 1},
                "method": {
                    "type": "string",
                    "enum": ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
                    "default": "GET",
                },
                "headers": {"type": ["array", "object"]},
                "body": {
                    "type": "object",
                    "properties": {"type": {"type": "string", "enum": ["none", "json", "text", "form"]}},
                },
                "timeout": {"type": "integer", "minimum": 1},
            },
            "required": ["url"],
        },
        "examples": [{"name": "Fetch user", "config": {"url": "https://api.example.com/users/1"}}],
        "presetOutput": {"status": 200, "headers": {}, "body": {}},
    },
    {
        "metadata": {
            "type": "kv-get",
            "name": "KV Get",
            "description": "Read a value from a key-value namespace",
            "category": "storage",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "namespace": {"type": "string", "default": DEFAULT_KV_BINDING},
                "key": {"type": "string", "minLength": 1},
                "type": {"type": "string", "enum": ["text", "json", "arrayBuffer", "stream"], "default": "text"},
            },
            "required": ["key"],
        },
        "bindings": [
            {
                "kind": "kv",
                "name": DEFAULT_KV_BINDING,
                "configField": "namespace",
                "description": "Key-value namespace binding",
            }
        ],
        "presetOutput": {"value": None, "exists": False, "metadata": None},
    },
    {
        "metadata": {
            "type": "kv-put",
            "name": "KV Put",
            "description": "Write a value to a key-value namespace",
            "category": "storage",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "namespace": {"type": "string", "default": DEFAULT_KV_BINDING},
                "key": {"type": "string", "minLength": 1},
                "value": _VALUE_SOURCE,
                "options": {
                    "type": "object",
                    "properties": {
                        "expirationTtl": {"type": "integer", "minimum": 60},
                        "expiration": {"type": "integer"},
                        "metadata": {"type": "object"},
                    },
                },
            },
            "required": ["key", "value"],
        },
        "bindings": [
            {
                "kind": "kv",
                "name": DEFAULT_KV_BINDING,
                "configField": "namespace",
                "description": "Key-value namespace binding",
            }
        ],
        "examples": [
            {
                "name": "Save user",
                "config": {"namespace": "USERS_KV", "key": "user-123", "value": {"type": "static", "content": {}}},
            }
        ],
        "presetOutput": {"success": True, "key": "user-123"},
    },
    {
        "metadata": {
            "type": "d1-query",
            "name": "D1 Query",
            "description": "Run a parameterized SQL statement against a D1 database",
            "category": "storage",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "database": {"type": "string", "default": DEFAULT_D1_BINDING},
                "query": {"type": "string", "minLength": 1},
                "params": {"type": "array", "items": {"type": "object", "properties": {"value": {}}}},
                "returnType": {"type": "string", "enum": ["all", "first", "run"], "default": "all"},
            },
            "required": ["query"],
        },
        "bindings": [
            {
                "kind": "d1",
                "name": DEFAULT_D1_BINDING,
                "configField": "database",
                "description": "D1 database binding",
            }
        ],
        "presetOutput": {"results": [], "meta": {}, "success": True},
    },
    {
        "metadata": {
            "type": "transform",
            "name": "Transform",
            "description": "Reshape data with user-supplied JavaScript",
            "category": "utils",
        },
        "configSchema": {"type": "object", "properties": {"code": {"type": "string"}}},
    },
    {
        "metadata": {
            "type": "conditional-router",
            "name": "Conditional Router",
            "description": "Choose a named branch from a comparison or a set of cases",
            "category": "flow",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "condition": {"type": "object"},
                "expression": {"type": "string"},
                "conditionPath": {"type": "string"},
                "cases": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "case": {"type": "string", "minLength": 1},
                            "value": {},
                            "isDefault": {"type": "boolean"},
                        },
                        "required": ["case"],
                    },
                },
            },
        },
        "presetOutput": {"branch": "true", "result": True},
    },
    {
        "metadata": {
            "type": "conditional-inline",
            "name": "Conditional",
            "description": "Evaluate a boolean condition",
            "category": "flow",
        },
        "configSchema": {
            "type": "object",
            "properties": {"condition": {"type": "object"}, "expression": {"type": "string"}},
        },
        "presetOutput": {"branch": "true", "result": True},
    },
    {
        "metadata": {
            "type": "sleep",
            "name": "Sleep",
            "description": "Pause the workflow for a duration or until a timestamp",
            "category": "utils",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "duration": {
                    "oneOf": [
                        {"type": "number", "minimum": 0},
                        {
                            "type": "object",
                            "properties": {
                                "type": {"type": "string", "enum": ["relative", "absolute"]},
                                "value": {"type": "number", "minimum": 0},
                                "unit": {"type": "string"},
                                "timestamp": {"type": ["string", "number"]},
                            },
                        },
                    ]
                }
            },
        },
    },
    {
        "metadata": {
            "type": "wait-event",
            "name": "Wait for Event",
            "description": "Pause the workflow until an external event (approval, webhook) arrives",
            "category": "utils",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "eventType": {"type": "string", "minLength": 1},
                "timeout": {
                    "type": "object",
                    "properties": {
                        "value": {"type": "number", "exclusiveMinimum": 0},
                        "unit": {"type": "string", "enum": ["seconds", "minutes", "hours", "days"]},
                    },
                    "required": ["value", "unit"],
                },
                "timeoutBehavior": {"type": "string", "enum": ["error", "continue"], "default": "error"},
            },
            "required": ["eventType"],
        },
        "examples": [
            {
                "name": "Wait for approval",
                "config": {"eventType": "approval", "timeout": {"value": 24, "unit": "hours"}},
            }
        ],
        "presetOutput": {"event": None, "timedOut": False},
    },
    {
        "metadata": {
            "type": "for-each",
            "name": "For Each",
            "description": "Iterate over an array, optionally mapping each item through an expression",
            "category": "flow",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "array": {"type": "string", "minLength": 1, "default": "items"},
                "itemName": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$", "default": "item"},
                "indexName": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$", "default": "index"},
                "expression": {"type": "string"},
                "maxIterations": {"type": "integer", "minimum": 1, "default": 1000},
                "parallel": {"type": "boolean", "default": False},
                "continueOnError": {"type": "boolean", "default": True},
            },
        },
        "examples": [
            {
                "name": "Process users",
                "config": {"array": "users", "itemName": "user", "expression": "user.email", "maxIterations": 100},
            }
        ],
        "presetOutput": {"items": [], "results": [], "count": 0, "errors": []},
    },
    {
        "metadata": {
            "type": "validate",
            "name": "Validate",
            "description": "Check the entry payload against declarative rules",
            "category": "utils",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "rules": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "field": {"type": "string"},
                            "type": {"type": "string"},
                            "message": {"type": "string"},
                        },
                        "required": ["type"],
                    },
                },
                "onFailure": {"type": "string", "enum": ["error", "continue"], "default": "error"},
            },
        },
        "presetOutput": {"valid": True, "errors": []},
    },
    {
        "metadata": {
            "type": "mcp-tool-input",
            "name": "MCP Tool Input",
            "description": "Receive tool-call arguments when the workflow is exposed as a tool",
            "category": "ai",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "toolName": {"type": "string", "pattern": "^[a-zA-Z0-9_-]+$"},
                "description": {"type": "string"},
                "parameters": _PARAMETER_LIST,
            },
        },
    },
    {
        "metadata": {
            "type": "mcp-tool-output",
            "name": "MCP Tool Output",
            "description": "Shape the workflow result as tool-call content",
            "category": "ai",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "format": {"type": "string", "enum": ["json", "text", "object"], "default": "json"},
                "responseStructure": _VALUE_SOURCE,
            },
        },
    },
    {
        "metadata": {
            "type": "ai-gateway",
            "name": "AI Gateway",
            "description": "Chat completion through the AI binding with response caching",
            "category": "ai",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "prompt": {"type": "string"},
                "model": {"type": "string", "default": DEFAULT_AI_MODEL},
                "temperature": {"type": "number", "minimum": 0, "maximum": 2},
                "maxTokens": {"type": "integer", "minimum": 1},
                "cacheTTL": {"type": "integer", "minimum": 0},
                "cacheNamespace": {"type": "string", "default": DEFAULT_KV_BINDING},
                "gatewayId": {"type": "string"},
            },
        },
        "bindings": [
            {"kind": "ai", "name": DEFAULT_AI_BINDING, "description": "Workers AI binding"},
            {
                "kind": "kv",
                "name": DEFAULT_KV_BINDING,
                "required": False,
                "configField": "cacheNamespace",
                "description": "Response cache namespace",
            },
        ],
        "presetOutput": {"text": "", "usage": {}},
    },
    {
        "metadata": {
            "type": "workers-ai",
            "name": "Workers AI",
            "description": "Run a text-generation model through the AI binding",
            "category": "ai",
        },
        "configSchema": {
            "type": "object",
            "properties": {
                "prompt": {"type": "string"},
                "model": {"type": "string", "default": DEFAULT_AI_MODEL},
                "temperature": {"type": "number", "minimum": 0, "maximum": 2},
                "maxTokens": {"type": "integer", "minimum": 1},
                "cacheTTL": {"type": "integer", "minimum": 0},
                "cacheNamespace": {"type": "string", "default": DEFAULT_KV_BINDING},
            },
        },
        "bindings": [
            {"kind": "ai", "name": DEFAULT_AI_BINDING, "description": "Workers AI binding"},
            {
                "kind": "kv",
                "name": DEFAULT_KV_BINDING,
                "required": False,
                "configField": "cacheNamespace",
                "description": "Response cache namespace",
            },
        ],
        "presetOutput": {"text": ""},
    },
]
