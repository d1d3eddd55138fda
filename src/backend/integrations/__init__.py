"""
Integrations Module - Streaming Integration
===========================================

Connects the Agents SDK run loop to the client-facing UI message stream.

Modules:
    ui_stream: Per-turn append-only writer drained as server-sent events
    sdk_events: Translation of ``Runner.run_streamed`` events into UI parts

Example:
    Streaming one turn:

        writer = UIMessageStreamWriter()
        translator = SDKEventTranslator(thinking=False)

        async for event in result.stream_events():
            for part in translator.translate(event):
                writer.write(part)
        writer.close()

See Also:
    :mod:`subagents.chat_agent`: Orchestrates the turn and serves ``writer.parts()``
"""
