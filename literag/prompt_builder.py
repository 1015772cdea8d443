from typing import Callable, List, Optional, Sequence

PromptTemplate = Callable[[str, List[str]], str]


# Default prompt template: answer only from context, admit ignorance otherwise.
_DEFAULT_TEMPLATE = """You are a helpful assistant. Answer the question using only the provided context snippets.
If the answer cannot be found in the context, say you don't know.

Context:
{context}

Question: {question}

Answer concisely:"""


class PromptBuilder:
    """
    Builds a prompt string by injecting retrieved context chunks
    and a user question into a template.

    Instances are callable with ``(question, contexts)`` so they can be
    passed anywhere a prompt template function is expected.
    """

    def __init__(
        self,
        template: Optional[str] = None,
        context_separator: str = "\n\n",
        snippet_format: str = "Snippet {number}:\n{text}",
        empty_context: str = "(no context)",
        max_context_chunks: Optional[int] = None,
    ):
        """
        Args:
            template: A format string with {context} and {question} placeholders.
                      Defaults to the built-in QA template.
            context_separator: String used to join multiple context chunks.
            snippet_format: Format for one snippet, with {number} (from 1) and {text}.
            empty_context: Placeholder used when no chunks were retrieved.
            max_context_chunks: Optional cap on how many chunks go into the prompt.
        """
        self.template = template or _DEFAULT_TEMPLATE
        self.context_separator = context_separator
        self.snippet_format = snippet_format
        self.empty_context = empty_context
        self.max_context_chunks = max_context_chunks

        # Validate placeholders at construction time so we fail fast
        if "{context}" not in self.template or "{question}" not in self.template:
            raise ValueError(
                "Prompt template must contain both {context} and {question} placeholders."
            )

    def build(self, question: str, context_chunks: Sequence[str]) -> str:
        """
        Build the final prompt string.

        Args:
            question: The user's question.
            context_chunks: Ordered list of relevant text chunks, best first.

        Returns:
            A formatted prompt string ready to be sent to the LLM.
        """
        chunks = list(context_chunks)
        if self.max_context_chunks is not None:
            chunks = chunks[: self.max_context_chunks]

        numbered = [
            self.snippet_format.format(number=i + 1, text=chunk)
            for i, chunk in enumerate(chunks)
        ]
        context_block = self.context_separator.join(numbered) or self.empty_context

        return self.template.format(context=context_block, question=question)

    __call__ = build

    def __repr__(self) -> str:
        return (
            f"PromptBuilder("
            f"max_context_chunks={self.max_context_chunks}, "
            f"context_separator={self.context_separator!r})"
        )


def default_prompt_template(question: str, contexts: List[str]) -> str:
    """Number the snippets from 1 and ask for an answer grounded in them."""
    return PromptBuilder().build(question, contexts)
