"""
tests/test_rag.py
-----------------
Unit tests for chunking, prompting and the end-to-end pipeline.

These tests run WITHOUT any API key: embeddings come from a small
deterministic character-histogram function and generation from a stub.

Run with:
    pytest tests/ -v
"""

import math
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

# Allow imports from the repo root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from literag.chunker import Chunk, TextChunker, chunk_document
from literag.document_loader import Document, DocumentLoader
from literag.embedder import FunctionEmbeddings
from literag.exceptions import ConfigurationError, ValidationError
from literag.generator import FunctionGenerator
from literag.pipeline import RAGPipeline
from literag.prompt_builder import PromptBuilder, default_prompt_template
from literag.vector_store import MemoryVectorStore


PARIS = "Paris is the capital of France. The Eiffel Tower is in Paris."
THREE_SENTENCES = "Alpha beta gamma. Delta epsilon zeta. Eta theta iota."


def toy_embed(texts):
    """Character histogram over 32 buckets, L2-normalised."""
    dim = 32
    vectors = []
    for text in texts:
        v = [0.0] * dim
        for ch in text:
            v[ord(ch) % dim] += 1
        norm = math.sqrt(sum(x * x for x in v)) or 1.0
        vectors.append([x / norm for x in v])
    return vectors


# ---------------------------------------------------------------------------
# TextChunker tests
# ---------------------------------------------------------------------------

class TestTextChunker(unittest.TestCase):
    """Tests for the TextChunker component."""

    def setUp(self):
        self.chunker = TextChunker()

    def test_short_text_returns_single_chunk(self):
        chunks = self.chunker.chunk(Document(id="d1", text=PARIS))
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0].text, PARIS)
        self.assertEqual(chunks[0].id, "d1::0")
        self.assertEqual(chunks[0].doc_id, "d1")
        self.assertIsNone(chunks[0].embedding)

    def test_chunk_ids_are_sequential_per_document(self):
        chunker = TextChunker(chunk_size=20, chunk_overlap=0)
        chunks = chunker.chunk(Document(id="d1", text=THREE_SENTENCES))
        self.assertEqual([c.id for c in chunks], ["d1::0", "d1::1", "d1::2"])
        self.assertEqual(
            [c.text for c in chunks],
            ["Alpha beta gamma.", "Delta epsilon zeta.", "Eta theta iota."],
        )

    def test_chunks_without_overlap_reconstruct_text(self):
        chunker = TextChunker(chunk_size=20, chunk_overlap=0)
        texts = chunker.split_text(THREE_SENTENCES)
        self.assertEqual(" ".join(texts), THREE_SENTENCES)

    def test_overlap_carries_tail_into_next_chunk(self):
        chunker = TextChunker(chunk_size=40, chunk_overlap=10)
        texts = chunker.split_text(THREE_SENTENCES)
        self.assertEqual(
            texts,
            ["Alpha beta gamma. Delta epsilon zeta.", "ilon zeta. Eta theta iota."],
        )
        self.assertTrue(texts[1].startswith(texts[0][-10:]))

    def test_sentences_are_packed_until_limit(self):
        chunker = TextChunker(chunk_size=37, chunk_overlap=0)
        texts = chunker.split_text(THREE_SENTENCES)
        self.assertEqual(texts[0], "Alpha beta gamma. Delta epsilon zeta.")

    def test_no_chunk_exceeds_chunk_size(self):
        text = " ".join(f"Sentence number {i} is here." for i in range(40))
        chunker = TextChunker(chunk_size=80, chunk_overlap=15)
        for chunk in chunker.split_text(text):
            self.assertLessEqual(len(chunk), 80)
            self.assertTrue(chunk.strip())

    def test_oversized_sentence_is_sliced(self):
        text = "a" * 250
        chunker = TextChunker(chunk_size=100, chunk_overlap=0)
        texts = chunker.split_text(text)
        self.assertEqual([len(t) for t in texts], [100, 100, 50])
        self.assertEqual("".join(texts), text)

    def test_oversized_slices_step_back_by_overlap(self):
        chunker = TextChunker(chunk_size=100, chunk_overlap=20)
        texts = chunker.split_text("a" * 250)
        self.assertEqual([len(t) for t in texts], [100, 100, 90, 10])

    def test_overlap_not_smaller_than_size_still_terminates(self):
        chunker = TextChunker(chunk_size=10, chunk_overlap=10)
        texts = chunker.split_text("b" * 25)
        self.assertEqual([len(t) for t in texts], [10, 10, 5])

    def test_oversized_sentence_after_buffer(self):
        text = "Short one. " + "x" * 120
        chunker = TextChunker(chunk_size=50, chunk_overlap=5)
        texts = chunker.split_text(text)
        self.assertEqual(texts[0], "Short one.")
        self.assertEqual([len(t) for t in texts[1:]], [50, 50, 30])

    def test_overlap_is_shortened_to_fit_chunk_size(self):
        chunker = TextChunker(chunk_size=20, chunk_overlap=10)
        texts = chunker.split_text("Aaaa bbbb cccc. Dddd eeee ffff.")
        self.assertEqual(texts, ["Aaaa bbbb cccc.", "ccc. Dddd eeee ffff."])

    def test_overlap_dropped_when_sentence_fills_chunk(self):
        chunker = TextChunker(chunk_size=20, chunk_overlap=10)
        texts = chunker.split_text("Aaaa bbbb cccc. Dddd eeee ffff ggg.")
        self.assertEqual(texts, ["Aaaa bbbb cccc.", "Dddd eeee ffff ggg."])

    def test_all_chunks_are_non_empty(self):
        text = "sentence. " * 30
        chunks = TextChunker(chunk_size=50, chunk_overlap=10).split_text(text)
        for chunk in chunks:
            self.assertTrue(len(chunk.strip()) > 0, "Empty chunk found")

    def test_empty_input_returns_empty_list(self):
        self.assertEqual(self.chunker.chunk(Document(id="e", text="")), [])

    def test_whitespace_only_returns_empty_list(self):
        self.assertEqual(self.chunker.split_text("   \n\t  "), [])

    def test_metadata_is_copied_per_chunk(self):
        doc = Document(id="d1", text=THREE_SENTENCES, metadata={"lang": "en"})
        chunks = TextChunker(chunk_size=20, chunk_overlap=0).chunk(doc)
        chunks[0].metadata["lang"] = "fr"
        self.assertEqual(doc.metadata["lang"], "en")
        self.assertEqual(chunks[1].metadata["lang"], "en")

    def test_custom_sentence_boundary(self):
        chunker = TextChunker(chunk_size=12, chunk_overlap=0, sentence_boundary=r"\n+")
        self.assertEqual(chunker.split_text("line one\nline two"), ["line one", "line two"])

    def test_split_documents_keeps_order(self):
        docs = [Document(id="a", text="First."), Document(id="b", text="Second.")]
        chunks = self.chunker.split_documents(docs)
        self.assertEqual([c.id for c in chunks], ["a::0", "b::0"])

    def test_chunk_document_helper(self):
        chunks = chunk_document(Document(id="d1", text=THREE_SENTENCES), chunk_size=20, chunk_overlap=0)
        self.assertEqual(len(chunks), 3)

    def test_invalid_options_raise(self):
        with self.assertRaises(ValueError):
            TextChunker(chunk_size=0)
        with self.assertRaises(ValueError):
            TextChunker(chunk_overlap=-1)

    def test_repr_contains_chunk_size(self):
        self.assertIn("256", repr(TextChunker(chunk_size=256, chunk_overlap=32)))


class TestChunk(unittest.TestCase):

    def test_with_embedding_returns_copy(self):
        chunk = Chunk(id="d::0", doc_id="d", text="t", metadata={"k": 1})
        embedded = chunk.with_embedding([1, 2])
        self.assertIsNone(chunk.embedding)
        self.assertEqual(embedded.embedding, [1.0, 2.0])
        self.assertEqual(embedded.metadata, {"k": 1})

    def test_dict_round_trip(self):
        chunk = Chunk(id="d::0", doc_id="d", text="t", embedding=[0.5], metadata={"k": "v"})
        restored = Chunk.from_dict(chunk.to_dict())
        self.assertEqual(restored.to_dict(), chunk.to_dict())


# ---------------------------------------------------------------------------
# PromptBuilder tests
# ---------------------------------------------------------------------------

class TestPromptBuilder(unittest.TestCase):
    """Tests for the PromptBuilder component."""

    def setUp(self):
        self.builder = PromptBuilder(max_context_chunks=3)

    def test_basic_build(self):
        prompt = self.builder.build(
            question="What is RAG?",
            context_chunks=["RAG stands for Retrieval-Augmented Generation."],
        )
        self.assertIn("What is RAG?", prompt)
        self.assertIn("Retrieval-Augmented Generation", prompt)
        self.assertIn("Context:", prompt)

    def test_context_chunks_are_numbered_from_one(self):
        prompt = self.builder.build("Question?", ["Chunk A", "Chunk B", "Chunk C"])
        self.assertIn("Snippet 1:\nChunk A", prompt)
        self.assertIn("Snippet 2:\nChunk B", prompt)
        self.assertIn("Snippet 3:\nChunk C", prompt)

    def test_max_context_chunks_cap(self):
        chunks = [f"Chunk {i}" for i in range(10)]
        prompt = self.builder.build("Question?", chunks)
        self.assertIn("Chunk 0", prompt)
        self.assertIn("Chunk 2", prompt)
        self.assertNotIn("Chunk 3", prompt)

    def test_default_template_function(self):
        prompt = default_prompt_template("Why?", ["Because."])
        self.assertIn("only the provided context", prompt)
        self.assertIn("don't know", prompt)
        self.assertIn("Snippet 1:\nBecause.", prompt)

    def test_builder_is_callable(self):
        self.assertEqual(self.builder("Q?", ["x"]), self.builder.build("Q?", ["x"]))

    def test_custom_template(self):
        builder = PromptBuilder(template="Context: {context}\nQ: {question}\nA:")
        prompt = builder.build("test question", ["test context"])
        self.assertTrue(prompt.startswith("Context:"))

    def test_invalid_template_raises(self):
        with self.assertRaises(ValueError):
            PromptBuilder(template="This template has no placeholders")

    def test_empty_context_chunks(self):
        prompt = self.builder.build("Question with no context?", [])
        self.assertIn("Question with no context?", prompt)
        self.assertIn("(no context)", prompt)


# ---------------------------------------------------------------------------
# RAGPipeline tests
# ---------------------------------------------------------------------------

class TestRAGPipeline(unittest.TestCase):
    """End-to-end tests with stubbed providers."""

    def setUp(self):
        self.prompts = []
        self.store = MemoryVectorStore()

        def generate(prompt):
            self.prompts.append(prompt)
            return "  stub answer  "

        self.pipeline = RAGPipeline(
            embedder=FunctionEmbeddings(toy_embed),
            store=self.store,
            generator=FunctionGenerator(generate),
        )

    def test_ingest_and_answer_with_context(self):
        chunks = self.pipeline.ingest(Document(id="doc1", text=PARIS))
        self.assertEqual(len(chunks), 1)
        self.assertEqual(len(self.store), 1)

        answer = self.pipeline.query("Where is the Eiffel Tower?")
        self.assertEqual(answer, "  stub answer  ")  # returned verbatim
        self.assertIn("Context:", self.prompts[0])
        self.assertIn("Snippet 1:\n" + PARIS, self.prompts[0])
        self.assertIn("Question: Where is the Eiffel Tower?", self.prompts[0])

    def test_best_matching_chunk_ranks_first(self):
        self.pipeline.ingest(Document(id="d1", text=PARIS))
        self.pipeline.ingest(Document(id="d2", text="zzz qqq xxx"))
        matches = self.pipeline.retrieve(PARIS)
        self.assertEqual(matches[0].chunk.id, "d1::0")
        self.assertGreaterEqual(matches[0].score, -1.0)
        self.assertLessEqual(matches[0].score, 1.0)

    def test_ingested_chunks_carry_embeddings(self):
        chunks = self.pipeline.ingest(Document(id="d1", text=PARIS))
        self.assertEqual(chunks[0].embedding, toy_embed([PARIS])[0])

    def test_batch_length_mismatch_raises(self):
        pipeline = RAGPipeline(
            embedder=FunctionEmbeddings(lambda texts: toy_embed(texts)[:-1]),
            store=self.store,
            generator=FunctionGenerator(lambda p: ""),
        )
        with self.assertRaises(ValidationError):
            pipeline.ingest(Document(id="d1", text=PARIS))
        self.assertEqual(len(self.store), 0)

    def test_query_embedding_must_be_single_vector(self):
        pipeline = RAGPipeline(
            embedder=FunctionEmbeddings(lambda texts: [[1.0], [1.0]]),
            store=self.store,
            generator=FunctionGenerator(lambda p: ""),
        )
        with self.assertRaises(ValidationError):
            pipeline.query("two vectors?")

    def test_ingest_many_preserves_order(self):
        docs = [
            Document(id="a", text="First doc."),
            Document(id="b", text="Second doc."),
            Document(id="c", text="Third doc."),
        ]
        results = self.pipeline.ingest_many(docs)
        self.assertEqual([r[0].doc_id for r in results], ["a", "b", "c"])
        self.assertEqual([c.doc_id for c in self.store.chunks], ["a", "b", "c"])

    def test_empty_document_skips_provider(self):
        fn = MagicMock(side_effect=toy_embed)
        pipeline = RAGPipeline(
            embedder=FunctionEmbeddings(fn),
            store=self.store,
            generator=FunctionGenerator(lambda p: ""),
        )
        self.assertEqual(pipeline.ingest(Document(id="e", text="   ")), [])
        fn.assert_not_called()

    def test_query_on_empty_store(self):
        self.pipeline.query("Anything?")
        self.assertIn("(no context)", self.prompts[0])

    def test_top_k_limits_context(self):
        for i in range(4):
            self.pipeline.ingest(Document(id=f"d{i}", text=f"Document number {i}."))
        result = self.pipeline.query("Document", top_k=2, return_sources=True)
        self.assertEqual(len(result["sources"]), 2)
        self.assertNotIn("Snippet 3:", self.prompts[0])

    def test_custom_prompt_template_gets_ranked_contexts(self):
        self.pipeline.ingest(Document(id="d1", text=PARIS))
        seen = {}

        def template(question, contexts):
            seen["question"] = question
            seen["contexts"] = contexts
            return "custom prompt"

        self.pipeline.query("Eiffel?", prompt_template=template)
        self.assertEqual(seen["question"], "Eiffel?")
        self.assertEqual(seen["contexts"], [PARIS])
        self.assertEqual(self.prompts[0], "custom prompt")

    def test_return_sources(self):
        self.pipeline.ingest(Document(id="d1", text=PARIS))
        result = self.pipeline.query("Eiffel?", return_sources=True)
        self.assertEqual(result["answer"], "  stub answer  ")
        self.assertEqual(result["sources"][0]["id"], "d1::0")
        self.assertEqual(result["sources"][0]["doc_id"], "d1")
        self.assertEqual(result["sources"][0]["text"], PARIS)

    def test_score_threshold_filters_matches(self):
        pipeline = RAGPipeline(
            embedder=FunctionEmbeddings(lambda texts: [[1.0, 0.0] if "yes" in t else [0.0, 1.0] for t in texts]),
            store=self.store,
            generator=FunctionGenerator(lambda p: ""),
            score_threshold=0.5,
        )
        pipeline.ingest(Document(id="y", text="yes."))
        pipeline.ingest(Document(id="n", text="no."))
        matches = pipeline.retrieve("yes?")
        self.assertEqual([m.chunk.doc_id for m in matches], ["y"])

    def test_ingest_paths(self):
        with tempfile.TemporaryDirectory() as tmp:
            Path(tmp, "a.txt").write_text(PARIS, encoding="utf-8")
            Path(tmp, "b.md").write_text("# Notes\n\nCats are pets.", encoding="utf-8")
            count = self.pipeline.ingest_paths(tmp)
        self.assertEqual(count, 2)
        self.assertEqual(len(self.store), 2)

    def test_from_openai_requires_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ConfigurationError):
                RAGPipeline.from_openai()


# ---------------------------------------------------------------------------
# DocumentLoader tests
# ---------------------------------------------------------------------------

class TestDocumentLoader(unittest.TestCase):

    def test_loads_supported_files_in_sorted_order(self):
        with tempfile.TemporaryDirectory() as tmp:
            Path(tmp, "b.md").write_text("Beta   text.", encoding="utf-8")
            Path(tmp, "a.txt").write_text("Alpha text.", encoding="utf-8")
            Path(tmp, "c.csv").write_text("x,y", encoding="utf-8")
            docs = DocumentLoader().load(tmp)

        self.assertEqual([Path(d.id).name for d in docs], ["a.txt", "b.md"])
        self.assertEqual(docs[1].text, "Beta text.")
        self.assertEqual(docs[0].metadata["source"], docs[0].id)

    def test_unsupported_file_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp, "data.csv")
            path.write_text("x,y", encoding="utf-8")
            with self.assertRaises(ValueError):
                DocumentLoader().load(str(path))


if __name__ == "__main__":
    unittest.main()
