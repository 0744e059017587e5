"""Claude Messages API to OpenAI Chat Completions relay."""
