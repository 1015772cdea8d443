"""
examples/basic_rag.py
---------------------
Minimal end-to-end demo of the RAG pipeline.

This script shows the three-step workflow:
  1. Ingest a local directory of documents into a JSON-backed store.
  2. Ask a question.
  3. Print the answer with sources.

With OPENAI_API_KEY set, real OpenAI embeddings and chat completions are
used. Without it, the demo falls back to a bag-of-words embedder and an
echoing generator so it still runs offline.

Usage:
    python examples/basic_rag.py
"""

import logging
import math
import os
import re
import sys
import tempfile
import textwrap
from pathlib import Path

# Allow running from the repo root without installing the package
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from literag import (  # noqa: E402
    FileVectorStore,
    FunctionEmbeddings,
    FunctionGenerator,
    GraphSearchIndex,
    RAGPipeline,
    TextChunker,
)

VOCAB = ["rag", "retrieval", "chunk", "chunks", "embedding", "vector", "query",
         "overlap", "sentence", "openai", "local", "model", "graph", "search"]


def bag_of_words(texts):
    """Fixed-vocabulary word counts, L2-normalised."""
    index = {word: i for i, word in enumerate(VOCAB)}
    vectors = []
    for text in texts:
        v = [0.0] * len(VOCAB)
        for token in re.findall(r"[a-z]+", text.lower()):
            if token in index:
                v[index[token]] += 1
        norm = math.sqrt(sum(x * x for x in v)) or 1.0
        vectors.append([x / norm for x in v])
    return vectors


def build_pipeline(store_path: str) -> RAGPipeline:
    if os.environ.get("OPENAI_API_KEY"):
        print("[demo] Using OpenAI embeddings and gpt-4o-mini")
        return RAGPipeline.from_openai(
            chunk_size=400,
            chunk_overlap=50,
            top_k=3,
            store_path=store_path,
            search_index=GraphSearchIndex(),
        )

    print("[demo] OPENAI_API_KEY not set: using offline stand-ins")
    return RAGPipeline(
        embedder=FunctionEmbeddings(bag_of_words),
        store=FileVectorStore.open(store_path, search_index=GraphSearchIndex()),
        generator=FunctionGenerator(
            lambda prompt: "Pretend LLM saw: " + prompt.split("Question:")[-1].strip()
        ),
        chunker=TextChunker(chunk_size=400, chunk_overlap=50),
        top_k=3,
    )


def main():
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # ------------------------------------------------------------------
    # 1.  Configuration
    # ------------------------------------------------------------------
    docs_dir = Path(__file__).parent / "sample_docs"
    if not docs_dir.exists():
        print(f"[demo] Creating sample_docs/ directory at {docs_dir}")
        docs_dir.mkdir(parents=True)
        _write_sample_doc(docs_dir)

    store_path = os.path.join(tempfile.mkdtemp(prefix="literag-"), "store.json")

    # ------------------------------------------------------------------
    # 2.  Build the pipeline and ingest documents
    # ------------------------------------------------------------------
    pipeline = build_pipeline(store_path)
    print(f"[demo] Ingesting documents from: {docs_dir}")
    num_chunks = pipeline.ingest_paths(str(docs_dir))
    print(f"[demo] Indexed {num_chunks} chunks into {store_path}.\n")

    # ------------------------------------------------------------------
    # 3.  Ask questions
    # ------------------------------------------------------------------
    questions = [
        "What is Retrieval-Augmented Generation?",
        "How does the chunking step work?",
        "What embedding models are supported?",
    ]

    for question in questions:
        print(f"Question: {question}")
        result = pipeline.query(question, return_sources=True)

        wrapped = textwrap.fill(result["answer"], width=80)  # type: ignore
        print(f"Answer:\n{wrapped}\n")

        sources = result["sources"]  # type: ignore
        if sources:
            top = sources[0]
            preview = top["text"][:120].replace("\n", " ")
            print(f"Top source {top['id']} (score={top['score']:.3f}): {preview!r}")
        print("-" * 70)


def _write_sample_doc(docs_dir: Path) -> None:
    """Create a tiny sample document so the demo works out of the box."""
    content = textwrap.dedent("""
        # literag

        ## What is Retrieval-Augmented Generation?

        Retrieval-Augmented Generation (RAG) improves large language model answers
        by fetching relevant context from an external knowledge base first. The
        query is embedded into a vector. The vector store is searched for the
        closest chunks. Those chunks are injected into the prompt as context.

        ## How does chunking work?

        Documents are split on sentence boundaries. Sentences are packed into a
        chunk until the next one would exceed chunk_size characters. The next
        chunk starts with an overlap taken from the end of the previous chunk.

        ## Supported embedding models

        OpenAI embedding models are used by default. Any local sentence-transformers
        model works too, as does the Hugging Face inference API. Large stores can
        search through an approximate graph index instead of a full scan.
    """)
    (docs_dir / "intro.md").write_text(content.strip())
    print(f"[demo] Created sample document: {docs_dir / 'intro.md'}")


if __name__ == "__main__":
    main()
