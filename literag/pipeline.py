import logging
from typing import List, Optional, Sequence, Union

from literag.chunker import Chunk, TextChunker
from literag.document_loader import Document, DocumentLoader
from literag.embedder import EmbeddingsProvider, OpenAIEmbeddings
from literag.exceptions import ValidationError
from literag.generator import Generator, OpenAIGenerator
from literag.prompt_builder import PromptTemplate, default_prompt_template
from literag.retriever import Retriever
from literag.search_index import SearchIndex
from literag.vector_store import FileVectorStore, MemoryVectorStore, ScoredMatch, VectorStore

logger = logging.getLogger(__name__)


class RAGPipeline:
    """
    End-to-end RAG pipeline.

    Ingestion:  chunk -> embed (one batched call) -> store.
    Query:      embed question -> search store -> build prompt -> generate.

    The pipeline only sequences the steps; every collaborator is injected,
    so any EmbeddingsProvider, VectorStore and Generator can be combined.
    No locking is done: share a store between pipelines only if writes are
    serialised by the caller.
    """

    def __init__(
        self,
        embedder: EmbeddingsProvider,
        store: VectorStore,
        generator: Generator,
        chunker: Optional[TextChunker] = None,
        top_k: int = 5,
        prompt_template: Optional[PromptTemplate] = None,
        score_threshold: Optional[float] = None,
    ):
        """
        Args:
            embedder: Provider used for both chunks and questions.
            store: Where embedded chunks are kept.
            generator: Produces the final answer from the prompt.
            chunker: Splits documents; defaults to TextChunker().
            top_k: Default number of chunks to retrieve per query.
            prompt_template: ``(question, contexts) -> prompt``; defaults to
                default_prompt_template.
            score_threshold: Minimum similarity for a chunk to be used.
        """
        self.embedder = embedder
        self.store = store
        self.generator = generator
        self.chunker = chunker or TextChunker()
        self.prompt_template = prompt_template or default_prompt_template
        self._loader = DocumentLoader()
        self._retriever = Retriever(
            vector_store=store,
            embedder=embedder,
            top_k=top_k,
            score_threshold=score_threshold,
        )

        logger.info(
            "RAGPipeline initialized | embedder=%s | store=%s | generator=%s | top_k=%d",
            embedder.__class__.__name__,
            store.__class__.__name__,
            generator.__class__.__name__,
            top_k,
        )

    @classmethod
    def from_openai(
        cls,
        openai_api_key: Optional[str] = None,
        embedding_model: str = "text-embedding-3-small",
        llm_model: str = "gpt-4o-mini",
        chunk_size: int = 500,
        chunk_overlap: int = 50,
        top_k: int = 5,
        temperature: float = 0.2,
        store_path: Optional[str] = None,
        search_index: Optional[SearchIndex] = None,
    ) -> "RAGPipeline":
        """
        Wire a pipeline with OpenAI embeddings and chat generation.

        Args:
            openai_api_key: OpenAI key. Falls back to OPENAI_API_KEY env var.
            embedding_model: OpenAI embedding model name.
            llm_model: OpenAI chat model for generation.
            chunk_size: Character size of each document chunk.
            chunk_overlap: Overlap between consecutive chunks.
            top_k: Number of chunks to retrieve per query.
            temperature: LLM sampling temperature.
            store_path: JSON file to persist the store to. In-memory if None.
            search_index: Optional approximate index used for searches.
        """
        if store_path:
            store = FileVectorStore.open(store_path, search_index=search_index)
        else:
            store = MemoryVectorStore(search_index=search_index)

        return cls(
            embedder=OpenAIEmbeddings(api_key=openai_api_key, model=embedding_model),
            store=store,
            generator=OpenAIGenerator(
                model=llm_model, temperature=temperature, api_key=openai_api_key
            ),
            chunker=TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap),
            top_k=top_k,
        )

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    def ingest(self, document: Document) -> List[Chunk]:
        """
        Chunk, embed and store one document.

        Returns:
            The stored chunks, with embeddings attached, in document order.

        Raises:
            ValidationError: if the provider returns a different number of
                vectors than chunks. Nothing is stored in that case.
        """
        chunks = self.chunker.chunk(document)
        if not chunks:
            logger.warning("Document %s produced no chunks", document.id)
            return []

        vectors = self.embedder.embed([chunk.text for chunk in chunks])
        if len(vectors) != len(chunks):
            raise ValidationError(
                f"Embeddings provider returned {len(vectors)} vectors "
                f"for {len(chunks)} chunks of document '{document.id}'"
            )

        embedded = [chunk.with_embedding(vector) for chunk, vector in zip(chunks, vectors)]
        self.store.add(embedded)
        logger.info("Ingested document %s (%d chunks)", document.id, len(embedded))
        return embedded

    def ingest_many(self, documents: Sequence[Document]) -> List[List[Chunk]]:
        """Ingest documents one after another, preserving input order."""
        return [self.ingest(document) for document in documents]

    def ingest_paths(self, paths: Union[str, List[str]]) -> int:
        """
        Load files from disk and ingest them.

        Args:
            paths: A file path, directory path, or list of paths.

        Returns:
            Number of chunks indexed.
        """
        if isinstance(paths, str):
            paths = [paths]

        total = 0
        for p in paths:
            logger.info("Loading documents from: %s", p)
            for document in self._loader.load(p):
                total += len(self.ingest(document))
        return total

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def retrieve(self, question: str, top_k: Optional[int] = None) -> List[ScoredMatch]:
        """Return the chunks that would be used to answer ``question``."""
        return self._retriever.retrieve(question, top_k=top_k)

    def query(
        self,
        question: str,
        top_k: Optional[int] = None,
        prompt_template: Optional[PromptTemplate] = None,
        return_sources: bool = False,
    ) -> Union[str, dict]:
        """
        Answer a question using the RAG pipeline.

        Args:
            question: The natural language question to answer.
            top_k: Override the default number of chunks to retrieve.
            prompt_template: Override the prompt template for this call.
            return_sources: If True, also return the retrieved chunks and scores.

        Returns:
            If return_sources=False: the generator's answer, unmodified.
            If return_sources=True: a dict with 'answer' and 'sources'.
        """
        logger.info("Query: %s", question)

        matches = self.retrieve(question, top_k=top_k)
        if not matches:
            logger.warning("No relevant chunks found for the query.")

        template = prompt_template or self.prompt_template
        prompt = template(question, [match.chunk.text for match in matches])
        answer = self.generator.generate(prompt)

        if return_sources:
            return {
                "answer": answer,
                "sources": [
                    {
                        "id": match.chunk.id,
                        "doc_id": match.chunk.doc_id,
                        "text": match.chunk.text,
                        "score": match.score,
                    }
                    for match in matches
                ],
            }
        return answer

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"RAGPipeline("
            f"embedder={self.embedder!r}, "
            f"store={self.store!r}, "
            f"top_k={self._retriever.top_k})"
        )
