"""Tests for the JSON-RPC server and the stdio channel."""

import asyncio
import io
import json
import logging

import pytest

from figmagate.gateway import GatewayState, ToolGateway
from figmagate.gateway.server import (
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROTOCOL_VERSION,
    ChannelLogHandler,
    McpServer,
)
from figmagate.gateway.transport import ChannelError, StdioChannel
from figmagate.tools import register_figma_tools


def rpc(request_id, method, params=None):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def run_session(server, *lines):
    """Feed lines through a StdioChannel and return (responses by id, notifications)."""
    reader = io.StringIO("".join(line + "\n" for line in lines))
    writer = io.StringIO()
    server.connect(StdioChannel(reader, writer))
    asyncio.run(server.serve())

    messages = [json.loads(line) for line in writer.getvalue().splitlines()]
    responses = {m["id"]: m for m in messages if "id" in m}
    notifications = [m for m in messages if "id" not in m]
    return responses, notifications


@pytest.fixture
def server(service, test_logger):
    gateway = ToolGateway(log=test_logger)
    register_figma_tools(gateway, service)
    return McpServer(gateway)


class TestStdioChannel:
    """Tests for the newline-delimited stdio channel."""

    def test_receive_skips_blank_lines(self):
        """Test blank lines are skipped and EOF yields None."""
        channel = StdioChannel(io.StringIO("\n  \n{\"a\": 1}\n"), io.StringIO())

        assert asyncio.run(channel.receive()) == '{"a": 1}'
        assert asyncio.run(channel.receive()) is None

    def test_send_writes_one_line(self):
        """Test each message is written as one line."""
        writer = io.StringIO()
        channel = StdioChannel(io.StringIO(), writer)

        channel.send({"jsonrpc": "2.0", "id": 1, "result": {}})

        assert writer.getvalue() == '{"jsonrpc": "2.0", "id": 1, "result": {}}\n'

    def test_send_after_close(self):
        """Test sending on a closed channel raises ChannelError."""
        channel = StdioChannel(io.StringIO(), io.StringIO())
        channel.close()

        assert channel.is_open is False
        with pytest.raises(ChannelError):
            channel.send({})


class TestProtocol:
    """Tests for JSON-RPC message handling."""

    def test_initialize(self, server):
        """Test the initialize handshake."""
        responses, _ = run_session(server, rpc(1, "initialize", {"protocolVersion": PROTOCOL_VERSION}))

        result = responses[1]["result"]
        assert result["protocolVersion"] == PROTOCOL_VERSION
        assert result["serverInfo"]["name"] == "Figma MCP Server"
        assert "tools" in result["capabilities"]

    def test_tools_list(self, server):
        """Test tools/list returns both tools."""
        responses, _ = run_session(server, rpc(1, "tools/list"))

        tools = {t["name"]: t for t in responses[1]["result"]["tools"]}
        assert set(tools) == {"get_document_data", "download_images"}
        schema = tools["get_document_data"]["inputSchema"]
        assert set(schema["properties"]) == {"fileKey", "nodeId", "depth"}
        assert schema["required"] == ["fileKey"]

    def test_tools_call(self, server):
        """Test tools/call returns the result envelope."""
        responses, _ = run_session(
            server,
            rpc(1, "tools/call", {"name": "get_document_data", "arguments": {"fileKey": "abc123"}}),
        )

        result = responses[1]["result"]
        assert result["isError"] is False
        assert json.loads(result["content"][0]["text"])["metadata"]["name"] == "Landing Page"

    def test_tool_error_is_a_result_not_a_protocol_error(self, server, figma_api):
        """Test a failed tool is a result with isError set."""
        responses, _ = run_session(
            server,
            rpc(1, "tools/call", {"name": "get_document_data", "arguments": {"fileKey": "abc123", "nodeId": "x"}}),
        )

        assert "error" not in responses[1]
        assert responses[1]["result"]["isError"] is True
        assert figma_api.requests == []

    def test_parse_error_then_keeps_serving(self, server):
        """Test a bad line is answered and serving continues."""
        responses, _ = run_session(server, "{not json", rpc(2, "ping"))

        assert responses[None]["error"]["code"] == PARSE_ERROR
        assert responses[2]["result"] == {}

    def test_unknown_method(self, server):
        """Test an unknown method returns METHOD_NOT_FOUND."""
        responses, _ = run_session(server, rpc(1, "resources/list"))

        assert responses[1]["error"]["code"] == METHOD_NOT_FOUND

    def test_bad_call_params(self, server):
        """Test tools/call without a name returns INVALID_PARAMS."""
        responses, _ = run_session(server, rpc(1, "tools/call", {"arguments": {}}))

        assert responses[1]["error"]["code"] == INVALID_PARAMS

    def test_notifications_get_no_response(self, server):
        """Test notifications are not answered."""
        responses, _ = run_session(
            server,
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
            rpc(7, "ping"),
        )

        assert list(responses) == [7]

    def test_eof_stops_gateway(self, server):
        """Test end of input stops the gateway."""
        run_session(server)

        assert server.gateway.state == GatewayState.STOPPED


class TestLogForwarding:
    """Tests for forwarding log records to the client."""

    def test_connect_message_forwarded(self, server):
        """Test the connect message is forwarded."""
        _, notifications = run_session(server)

        assert notifications[0]["method"] == "notifications/message"
        assert notifications[0]["params"]["level"] == "info"
        assert "ready to process requests" in notifications[0]["params"]["data"]

    def test_set_level_filters(self, server):
        """Test raising the level filters forwarded records."""
        _, notifications = run_session(
            server,
            rpc(1, "logging/setLevel", {"level": "error"}),
            rpc(2, "tools/call", {"name": "get_document_data", "arguments": {"fileKey": "abc123"}}),
        )

        # only the connect message, sent before the level was raised
        assert len(notifications) == 1

    def test_unknown_level(self, server):
        """Test an unknown level returns INVALID_PARAMS."""
        responses, _ = run_session(server, rpc(1, "logging/setLevel", {"level": "loud"}))

        assert responses[1]["error"]["code"] == INVALID_PARAMS

    def test_handler_removed_after_stop(self, server, test_logger):
        """Test the log handler is removed on stop."""
        run_session(server)

        assert not any(isinstance(h, ChannelLogHandler) for h in test_logger.handlers)

    def test_forwarding_disabled(self, service, test_logger):
        """Test nothing is forwarded when disabled."""
        gateway = ToolGateway(log=test_logger)
        register_figma_tools(gateway, service)

        _, notifications = run_session(McpServer(gateway, forward_logs=False))

        assert notifications == []

    def test_level_names(self):
        """Test logging levels map to protocol names."""
        assert ChannelLogHandler.level_name(logging.DEBUG) == "debug"
        assert ChannelLogHandler.level_name(logging.WARNING) == "warning"
        assert ChannelLogHandler.level_name(logging.CRITICAL) == "critical"

    def test_set_level_lowers_logger(self, server, test_logger):
        """Test lowering the level lets records through a stricter logger."""
        test_logger.setLevel(logging.WARNING)

        _, notifications = run_session(
            server,
            rpc(1, "logging/setLevel", {"level": "debug"}),
            rpc(2, "tools/call", {"name": "get_document_data", "arguments": {"fileKey": "abc123"}}),
        )

        assert test_logger.level == logging.DEBUG
        assert any("get_document_data finished" in n["params"]["data"] for n in notifications)
