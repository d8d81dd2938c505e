"""chat-cli: a conversational agent that executes model-requested tool calls."""

__version__ = "0.1.0"
