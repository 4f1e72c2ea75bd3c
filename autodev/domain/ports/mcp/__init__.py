from autodev.domain.ports.mcp.tool_invoker_port import ToolInvokerPort

__all__ = ["ToolInvokerPort"]
