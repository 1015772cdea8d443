"""literag

A small Retrieval-Augmented Generation pipeline: sentence-aware chunking,
cosine ranking, an approximate proximity-graph index, memory and JSON file
vector stores, and pluggable embedding / generation providers.
"""

__version__ = "1.1.0"

from literag.chunker import Chunk, TextChunker, chunk_document
from literag.document_loader import Document, DocumentLoader
from literag.embedder import (
    Embedder,
    EmbeddingsProvider,
    FunctionEmbeddings,
    HuggingFaceEmbeddings,
    OpenAIEmbeddings,
    SentenceTransformerEmbeddings,
)
from literag.exceptions import (
    ConfigurationError,
    IndexNotReadyError,
    ProviderError,
    RAGError,
    ValidationError,
)
from literag.generator import FunctionGenerator, Generator, OpenAIGenerator
from literag.pipeline import RAGPipeline
from literag.prompt_builder import PromptBuilder, default_prompt_template
from literag.retriever import Retriever
from literag.search_index import FaissSearchIndex, GraphSearchIndex, SearchIndex
from literag.similarity import cosine_similarity, rank_by_cosine
from literag.vector_store import FileVectorStore, MemoryVectorStore, ScoredMatch, VectorStore

__all__ = [
    "RAGPipeline",
    "Document",
    "DocumentLoader",
    "Chunk",
    "TextChunker",
    "chunk_document",
    "EmbeddingsProvider",
    "Embedder",
    "FunctionEmbeddings",
    "OpenAIEmbeddings",
    "HuggingFaceEmbeddings",
    "SentenceTransformerEmbeddings",
    "Generator",
    "FunctionGenerator",
    "OpenAIGenerator",
    "PromptBuilder",
    "default_prompt_template",
    "Retriever",
    "SearchIndex",
    "GraphSearchIndex",
    "FaissSearchIndex",
    "cosine_similarity",
    "rank_by_cosine",
    "VectorStore",
    "MemoryVectorStore",
    "FileVectorStore",
    "ScoredMatch",
    "RAGError",
    "ConfigurationError",
    "ValidationError",
    "IndexNotReadyError",
    "ProviderError",
]
