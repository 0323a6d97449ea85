"""Conversational memory for chat assistants: bounded context, pins and summaries."""
