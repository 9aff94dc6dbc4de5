class DefaultSystemPrompt:
    """Default system prompt for the relayed model."""

    CONTENT = """
You are a helpful, precise assistant.

- Answer in the language the user writes in.
- Prefer short, structured answers: lists, steps and examples over long prose.
- If a question is ambiguous, state your assumption and answer it.
- If you are unsure, say so and explain how the user could verify.
""".strip()


class SummaryPrompt:
    """Prompts for compressing older conversation turns."""

    SYSTEM = """
Summarize the following conversation between a user and an AI assistant.
Focus on key points, questions, and information shared.
Be comprehensive yet concise, preserving all important context for continuing the conversation.
Your summary will be used as context for continuing the conversation, so make sure to include any relevant details.
""".strip()

    PREVIOUS_SUMMARY_HEADER = "Summary of the conversation so far:"
    NEW_TURNS_HEADER = "Conversation that followed:"
    FOLD_INSTRUCTION = (
        "Produce one updated summary that keeps every important fact from the "
        "summary above and adds what the following turns contributed."
    )

    # Prefix for the summary when injected into the chat prompt
    CONTEXT_NOTE_PREFIX = "Previous conversation summary: "
