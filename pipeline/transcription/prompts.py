OCR_PROMPT = """You are transcribing a Renaissance Latin facsimile.

**Input:** The page image and (if available) the previous page's transcription for context.

**Output:** A faithful Latin text in Markdown format.

**Instructions:**
1. Begin with `[[notes: ...]]` summarizing any image issues, uncertain readings, layout observations, or alternate expansions.
2. Include `[[page number: ####]]` near the top if visible.
3. Preserve original capitalization, punctuation, and spacing when legible.
4. Use Markdown formatting (headings, centered lines, italics) so the transcription resembles the source layout.
5. Mark uncertain characters or alternate readings inline with `[[notes: ...]]`.
6. Expand abbreviations only when certain; otherwise note the ambiguity in `[[notes]]`.

**Language:** {language}"""

TRANSLATION_PROMPT = """You are translating a freshly transcribed Latin text into accessible English.

**Input:** The OCR transcription and (if available) the previous page's translation for continuity.

**Output:** A layperson-friendly English translation in Markdown format.

**Instructions:**
1. Start with `[[notes: ...]]` mentioning prior-page context, interpretive choices, tricky phrases, historical references, or multiple possible readings.
2. Use clear Markdown mirroring the source layout (headings, centered text, line breaks).
3. Keep `[[notes: ...]]` inline wherever extra explanation or alternate translations help a general reader.
4. Style: warm museum label. Explain references rather than leaving jargon unexplained.
5. Always mention continuity with the previous page if relevant.

**Source language:** {source_language}
**Target language:** {target_language}"""

SUMMARY_PROMPT = """Summarize the contents of this page for a general, non-specialist reader.

**Input:** The translated text and (if available) the previous page's summary for context.

**Output:** A 3-5 sentence summary in Markdown format.

**Instructions:**
1. Write 3 to 5 clear sentences, optionally with bullet points.
2. Mention key people, ideas, and why the page matters to modern audiences.
3. Highlight continuity with the previous page in `[[notes: ...]]` at the top if relevant.
4. Make it accessible to someone who has never read the original text."""

DEFAULT_PROMPTS = {
    "ocr": OCR_PROMPT,
    "translation": TRANSLATION_PROMPT,
    "summary": SUMMARY_PROMPT,
}

PREVIOUS_TRANSCRIPTION_HEADER = "**Previous page transcription for context:**"
TEXT_TO_TRANSLATE_HEADER = "**Text to translate:**"
PREVIOUS_TRANSLATION_HEADER = "**Previous page translation for continuity:**"
TRANSLATED_TEXT_HEADER = "**Translated text:**"
PREVIOUS_SUMMARY_HEADER = "**Previous page summary for context:**"
