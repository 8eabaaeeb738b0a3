"""
minirag - Prompt Templates & Fixed Responses
==============================================
Centralised prompt management for the RAG engine.  All prompts and
user-facing guidance strings live here so they can be reviewed and
versioned independently of application logic.

Exports
-------
SYSTEM_PROMPT, USER_PROMPT_TEMPLATE,
ANSWER_TEMPLATE, GENERATION_FAILURE_TEMPLATE,
EMPTY_QUESTION_RESPONSE, NO_DATA_RESPONSE.
"""

# ══════════════════════════════════════════════════════════════════════
#  GUIDANCE RESPONSES (no provider call)
# ══════════════════════════════════════════════════════════════════════

EMPTY_QUESTION_RESPONSE: str = "Empty question. Please provide a specific question."

NO_DATA_RESPONSE: str = "No data. Please add documents first via `minirag index`."


# ══════════════════════════════════════════════════════════════════════
#  SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════

SYSTEM_PROMPT: str = (
    "You are an assistant that must answer strictly in English. "
    "Use only the provided context. "
    "Cite sources as [1], [2], … when appropriate. "
    "If the answer is not in the context, state that explicitly."
)


# ══════════════════════════════════════════════════════════════════════
#  USER PROMPT TEMPLATE
# ══════════════════════════════════════════════════════════════════════

USER_PROMPT_TEMPLATE: str = """Question: {question}

Quotes:
{citations}

Context:
{context}"""


# ══════════════════════════════════════════════════════════════════════
#  ANSWER SHAPES
# ══════════════════════════════════════════════════════════════════════

ANSWER_TEMPLATE: str = "Answer: {answer} Sources: {citations}"

GENERATION_FAILURE_TEMPLATE: str = "Failed to generate an answer ({category}). Below is the relevant context:\n\n{context}"
