"""
Core application engine for orchestrating a recording.

The `RecordingOrchestrator` acts as the session coordinator: it authenticates
once, builds the stream URL, and delegates retrieval to a `Retriever`
strategy (segment download or external encoder).
"""
