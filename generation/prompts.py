FALLBACK_ANSWER = "Ooops! I don't know that."

SYSTEM_PROMPT = (
    'I want you to act as a support agent. Your name is "My Super Assistant". '
    "You will provide me with answers from the given info. "
    f'If the answer is not included, say exactly "{FALLBACK_ANSWER}" and stop after that. '
    "Refuse to answer any question not about the info. Never break character."
)


def build_messages(
    question: str,
    context_text: str,
    system_prompt: str = SYSTEM_PROMPT,
) -> list[dict[str, str]]:
    """
    Build the chat messages for one question.

    The retrieved context goes into its own user turn ahead of the
    question, so the model reads the info before it is asked about it.
    """
    messages = [{"role": "system", "content": system_prompt}]
    if context_text:
        messages.append({"role": "user", "content": context_text})
    messages.append({"role": "user", "content": question})
    return messages
