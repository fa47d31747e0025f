"""Chandler API: OpenAI-compatible chat completions over the Chandler AI chat service.

This package bridges the OpenAI ``/v1/chat/completions`` contract onto the
conversation-oriented Chandler AI upstream:

- Resolves which upstream conversation to continue and who the caller is
- Folds the OpenAI message array into the single prompt the upstream takes
- Parses the upstream ``data:{...}`` line protocol into delta events
- Re-emits deltas as one completion document or as an SSE chunk stream

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""

__version__ = "0.1.0"
