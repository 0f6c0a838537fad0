"""Prompt builders for the palm reading, spirit, and follow-up chat requests."""


def reading_prompt(display_name: str) -> str:
    """Return the report template for the palm reading."""
    return (
        "You are the world's foremost palm reader. Study the attached image closely.\n"
        f'The person being read is "{display_name}".\n'
        "Write the report in Markdown with these sections:\n"
        "1. **Overall Impression**: their fundamental qualities.\n"
        "2. **Reading the Major Lines**: the life line, head line, and heart line.\n"
        "3. **Mounts and Signs**: notable features of the hand.\n"
        "4. **Advice from the AI**: three pieces of advice.\n"
        f'Address the person as "{display_name}" throughout the report.'
    )


def spirit_prompt(display_name: str, analysis_excerpt: str) -> str:
    """Return the prompt asking for a guardian spirit and its image prompt."""
    return (
        f"From the palm reading below, define one fantastical guardian spirit that "
        f"symbolizes {display_name}'s soul. Reply with an English image-generation prompt "
        f"followed by the spirit's name in parentheses. Reading: {analysis_excerpt}"
    )


def styled_image_prompt(prompt: str) -> str:
    """Return the derived prompt wrapped in the house illustration style."""
    return (
        f"Mystical ethereal fantasy spirit, {prompt}, "
        "detailed spiritual digital art, cinematic lighting"
    )


def chat_prompt(analysis_text: str, question: str) -> str:
    """Return the follow-up prompt embedding the full reading."""
    return f"Palm reading result:\n{analysis_text}\n\nQuestion: {question}"
